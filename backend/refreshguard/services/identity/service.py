"""
IdentityService
===============

Aggregate service responsible for the ``User`` principal:

- Registration with email uniqueness
- Authentication (verification only, no token issuance)
- Profile lookup
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from refreshguard.repositories.user import UserRepository
from refreshguard.services._shared.base import BaseService
from refreshguard.services._shared.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    violates,
)
from refreshguard.services.identity.dto import UserAuthIn, UserPublicOut, UserRegisterIn


class IdentityService(BaseService):
    """
    Application service for the ``User`` aggregate.

    It never issues tokens; :class:`~refreshguard.services.sessions.SessionService`
    does that once a principal is known.
    """

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register_user(self, dto: UserRegisterIn) -> UserPublicOut:
        """
        Register a new user.

        :param dto: User registration input DTO.
        :returns: Public-safe user DTO.
        :raises ConflictError: If the email is already registered.
        """
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists_by_email(dto.email):
                raise ConflictError("User", "email already in use")

            try:
                user = repo.create(email=dto.email, password=dto.password, full_name=dto.full_name)
            except IntegrityError as exc:
                if violates(exc, "uq_users_email", "users.email"):
                    raise ConflictError("User", "email already in use") from exc
                raise
            return UserPublicOut.from_model(user)

    # --------------------------------------------------------------------- #
    # Authentication
    # --------------------------------------------------------------------- #

    def authenticate(self, dto: UserAuthIn) -> UserPublicOut:
        """
        Verify email and password.

        :raises UnauthorizedError: With one message for unknown email and bad
            password alike.
        """
        with self.rw_uow() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is None:
                raise UnauthorizedError("Invalid email or password")
            return UserPublicOut.from_model(user)

    # --------------------------------------------------------------------- #
    # Queries
    # --------------------------------------------------------------------- #

    def get_user(self, principal_id: str | int) -> UserPublicOut:
        """Return the principal behind a token subject."""
        try:
            user_id = int(principal_id)
        except (TypeError, ValueError) as exc:
            raise NotFoundError("User", str(principal_id)) from exc
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return UserPublicOut.from_model(user)

    def get_by_email(self, email: str) -> UserPublicOut:
        with self.rw_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            return UserPublicOut.from_model(user)
