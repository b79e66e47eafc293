from .session_repository import RedisSessionRepository

__all__ = ["RedisSessionRepository"]
