"""Repository package exposing persistence-layer access for the models."""

from __future__ import annotations

from refreshguard.repositories.base import BaseRepository
from refreshguard.repositories.refresh_credential import RefreshCredentialRepository
from refreshguard.repositories.user import UserRepository

__all__ = ["BaseRepository", "RefreshCredentialRepository", "UserRepository"]
