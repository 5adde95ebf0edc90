"""
HoneyBadger Client

Data-access layer for the HoneyBadger gift app: an authenticated async API
client and a state manager that keeps sent gifts, received gifts and
pending approvals in sync with the backend.
"""

from .client import ApiClient, logging_hooks
from .config import Settings, get_settings
from .errors import (
    ClientError,
    DecodingError,
    InvalidResponseError,
    ServerError,
    UnauthorizedError,
)
from .schemas import (
    AuthResponse,
    ChallengeSubmissionResponse,
    Contact,
    Gift,
    PendingApproval,
    ReviewAction,
    SendGiftResponse,
    User,
    parse_optional_int,
)
from .session import AuthSession
from .state import GiftStateManager, create_gift_state_manager, gift_session
from .tokens import (
    MemoryTokenStorage,
    SqliteTokenStorage,
    TokenStorage,
    TokenStorageError,
    TokenStore,
)

__version__ = "0.1.0"
__all__ = [
    # Main classes
    "ApiClient",
    "GiftStateManager",
    "AuthSession",
    "TokenStore",

    # Token persistence
    "TokenStorage",
    "SqliteTokenStorage",
    "MemoryTokenStorage",
    "TokenStorageError",

    # Configuration
    "Settings",
    "get_settings",

    # Data models
    "User",
    "AuthResponse",
    "Gift",
    "PendingApproval",
    "SendGiftResponse",
    "ChallengeSubmissionResponse",
    "Contact",
    "ReviewAction",
    "parse_optional_int",

    # Exceptions
    "ClientError",
    "InvalidResponseError",
    "UnauthorizedError",
    "ServerError",
    "DecodingError",

    # Convenience functions
    "create_gift_state_manager",
    "gift_session",
    "logging_hooks",
]
