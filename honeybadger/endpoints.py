"""
Backend endpoint table.

Each operation the client performs is described once here: HTTP method,
path template, the status codes that count as success, and the message
used when a failing response carries no decodable error body.
"""

from dataclasses import dataclass
from urllib.parse import quote


@dataclass(frozen=True)
class Endpoint:
    """A single backend operation."""
    method: str
    path: str
    success_codes: frozenset[int]
    default_error: str
    authenticated: bool = True

    def url_path(self, **params: str) -> str:
        """Fill the path template with URL-quoted identifiers."""
        if not params:
            return self.path
        return self.path.format(**{k: quote(str(v), safe="") for k, v in params.items()})


def _codes(*codes: int) -> frozenset[int]:
    return frozenset(codes)


# =============================================================================
# Authentication
# =============================================================================

LOGIN = Endpoint("POST", "/api/login", _codes(200), "Login failed", authenticated=False)
SIGNUP = Endpoint("POST", "/api/signup", _codes(200, 201), "Signup failed", authenticated=False)
CURRENT_USER = Endpoint("GET", "/api/auth/me", _codes(200), "Failed to get user")
LOGOUT = Endpoint("POST", "/api/auth/logout", _codes(200, 204), "Logout failed")

# =============================================================================
# Gifts
# =============================================================================

SEND_GIFT = Endpoint("POST", "/api/send-honey-badger", _codes(200, 201), "Failed to send gift")
SENT_GIFTS = Endpoint("GET", "/api/honey-badgers", _codes(200), "Failed to get gifts")
RECEIVED_GIFTS = Endpoint(
    "GET", "/api/my-received-gifts", _codes(200), "Failed to get received gifts"
)
PENDING_APPROVALS = Endpoint(
    "GET", "/api/my-pending-approvals", _codes(200), "Failed to get pending approvals"
)
REVIEW_SUBMISSION = Endpoint(
    "PUT",
    "/api/submissions/{submission_id}/review",
    _codes(200),
    "Failed to review submission",
)
SUBMIT_CHALLENGE = Endpoint(
    "POST",
    "/api/gifts/{tracking_id}/submit-challenge",
    _codes(200, 201),
    "Failed to submit challenge photo",
)

# =============================================================================
# Contacts
# =============================================================================

CONTACTS = Endpoint("GET", "/api/contacts", _codes(200), "Failed to get contacts")
ADD_CONTACT = Endpoint("POST", "/api/contacts", _codes(200, 201), "Failed to add contact")
