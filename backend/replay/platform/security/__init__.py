from replay.platform.security.auth import Principal, get_current_principal
from replay.platform.security.jwt import create_access_token

__all__ = ["Principal", "create_access_token", "get_current_principal"]
