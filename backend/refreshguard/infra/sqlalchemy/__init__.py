from .session_repository import SQLAlchemySessionRepository

__all__ = ["SQLAlchemySessionRepository"]
