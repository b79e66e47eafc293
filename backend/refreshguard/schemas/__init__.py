"""Marshmallow schemas for request validation and response shaping."""

from __future__ import annotations

from .auth import LoginSchema, RefreshSchema, RegisterSchema, TokenPairSchema, UserSchema

__all__ = ["LoginSchema", "RefreshSchema", "RegisterSchema", "TokenPairSchema", "UserSchema"]
