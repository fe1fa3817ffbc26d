from client.api import ApiError, EcoManagerClient, RefreshingAuth, SessionExpired
from client.tokens import FileTokenStore, MemoryTokenStore

__all__ = [
    "ApiError",
    "EcoManagerClient",
    "FileTokenStore",
    "MemoryTokenStore",
    "RefreshingAuth",
    "SessionExpired",
]
