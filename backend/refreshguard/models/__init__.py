from refreshguard.models.refresh_credential import RefreshCredential
from refreshguard.models.user import User

__all__ = ["RefreshCredential", "User"]
