from .dto import UserAuthIn, UserPublicOut, UserRegisterIn
from .service import IdentityService

__all__ = ["IdentityService", "UserAuthIn", "UserPublicOut", "UserRegisterIn"]
