"""
Pydantic schemas for the HoneyBadger backend payloads.

Wire fields are camelCase; models expose snake_case attributes through an
alias generator, and accept either spelling on input. Unknown wire fields
are ignored so the backend can add fields without breaking older clients.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Tolerant Field Parsing
# =============================================================================

def parse_optional_int(value: Any) -> Optional[int]:
    """
    Resolve a wire value that may be a number or a numeric string.

    Precedence:
        1. Numeric form: an int, or a float holding an integral value.
        2. Numeric string: e.g. "7" or " 7 ".

    Anything else (absent, non-numeric text, fractional numbers, booleans,
    containers) resolves to None. This function never raises.
    """
    if value is None or isinstance(value, bool):
        return None

    # Step 1: numeric form
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None

    # Step 2: numeric string
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None

    return None


def parse_optional_float(value: Any) -> Optional[float]:
    """Same policy as parse_optional_int, for monetary values."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def _identifier_to_str(value: Any) -> Any:
    """Backends hand out numeric or string ids; keep them as strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


# =============================================================================
# Base
# =============================================================================

class WireModel(BaseModel):
    """Immutable snapshot decoded from (or encoded to) a camelCase payload."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire aliases, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Enums
# =============================================================================

class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# =============================================================================
# Authentication Schemas
# =============================================================================

class User(WireModel):
    """Authenticated user identity."""
    id: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return _identifier_to_str(v)


class LoginRequest(WireModel):
    email: str
    password: str


class SignupRequest(WireModel):
    name: str
    email: str
    password: str
    phone: str = ""


class AuthResponse(WireModel):
    """Response from login and signup."""
    success: bool = True
    message: Optional[str] = None
    token: str = Field(min_length=1)
    user: User


class UserResponse(WireModel):
    success: bool
    user: User


class ErrorResponse(WireModel):
    """Body returned by any failing call."""
    success: bool
    message: str


# =============================================================================
# Gift Schemas
# =============================================================================

class Gift(WireModel):
    """A sent or received honey badger gift."""
    id: str
    gift_type: str
    status: str
    created_at: str

    # Recipient
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None

    # Sender
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None

    # Challenge
    challenge_id: Optional[str] = None
    challenge_type: Optional[str] = None
    challenge_description: Optional[str] = None
    verification_type: Optional[str] = None
    duration: Optional[int] = None
    reminder_frequency: Optional[str] = None

    # Gift content
    personal_note: Optional[str] = None
    message: Optional[str] = None
    gift_value: Optional[float] = None
    delivery_method: Optional[str] = None
    card_image: Optional[str] = None

    @field_validator("id", "challenge_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return _identifier_to_str(v)

    @field_validator("duration", mode="before")
    @classmethod
    def tolerant_duration(cls, v: Any) -> Optional[int]:
        return parse_optional_int(v)

    @field_validator("gift_value", mode="before")
    @classmethod
    def tolerant_gift_value(cls, v: Any) -> Optional[float]:
        return parse_optional_float(v)


class GiftsResponse(WireModel):
    success: bool
    gifts: list[Gift] = Field(default_factory=list)


class SendGiftResponse(WireModel):
    """Response from sending a gift."""
    success: bool
    message: Optional[str] = None
    tracking_id: Optional[str] = None
    sender: Optional[Any] = None
    note: Optional[Any] = None

    @field_validator("tracking_id", mode="before")
    @classmethod
    def normalize_tracking_id(cls, v: Any) -> Any:
        return _identifier_to_str(v)


# =============================================================================
# Approval Schemas
# =============================================================================

class PendingApproval(WireModel):
    """A challenge photo awaiting review by the gift sender."""
    submission_id: str
    photo_url: str
    submitted_at: str
    gift_id: str
    gift_type: str
    recipient_name: Optional[str] = None
    gift_value: Optional[float] = None
    challenge_description: Optional[str] = None

    @field_validator("submission_id", "gift_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return _identifier_to_str(v)

    @field_validator("gift_value", mode="before")
    @classmethod
    def tolerant_gift_value(cls, v: Any) -> Optional[float]:
        return parse_optional_float(v)


class PendingApprovalsResponse(WireModel):
    success: bool
    pending_approvals: list[PendingApproval] = Field(default_factory=list)
    count: Optional[int] = None


class ReviewSubmissionRequest(WireModel):
    action: ReviewAction
    rejection_reason: Optional[str] = None


class ChallengeSubmissionData(WireModel):
    submission_id: str
    photo_url: str
    status: str

    @field_validator("submission_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return _identifier_to_str(v)


class ChallengeSubmissionResponse(WireModel):
    """Response from uploading a challenge photo."""
    success: bool
    message: Optional[str] = None
    data: Optional[ChallengeSubmissionData] = None


# =============================================================================
# Contact Schemas
# =============================================================================

class Contact(WireModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return _identifier_to_str(v)


class AddContactRequest(WireModel):
    name: str
    phone: str
    email: str = ""
    notes: str = ""


class ContactsResponse(WireModel):
    success: bool
    contacts: list[Contact] = Field(default_factory=list)


class ContactResponse(WireModel):
    success: bool
    contact: Contact

