"""
HoneyBadger Client - API Client

Async HTTP client for the HoneyBadger Node.js backend.

Each public method performs exactly one request and resolves to either a
typed payload or one ClientError subclass:
- success status          -> decoded payload (DecodingError if it doesn't fit)
- 401/403 (authenticated) -> token cleared, UnauthorizedError
- anything else           -> ServerError(message from error body or default)
- transport failure       -> InvalidResponseError
"""

import logging
from typing import Any, Callable, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from . import endpoints
from .config import Settings, get_settings
from .endpoints import Endpoint
from .errors import (
    DecodingError,
    InvalidResponseError,
    ServerError,
    UnauthorizedError,
)
from .schemas import (
    AddContactRequest,
    AuthResponse,
    ChallengeSubmissionResponse,
    Contact,
    ContactResponse,
    ContactsResponse,
    ErrorResponse,
    Gift,
    GiftsResponse,
    LoginRequest,
    PendingApproval,
    PendingApprovalsResponse,
    ReviewAction,
    ReviewSubmissionRequest,
    SendGiftResponse,
    SignupRequest,
    User,
    UserResponse,
)
from .tokens import SqliteTokenStorage, TokenStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

UNAUTHORIZED_CODES = frozenset({401, 403})

EventHooks = dict[str, list[Callable[..., Any]]]


# =============================================================================
# Observability Hooks
# =============================================================================

def logging_hooks(log_bodies: bool = False) -> EventHooks:
    """
    Build httpx event hooks that log each exchange at DEBUG.

    Headers are never logged, so the bearer token stays out of the logs.
    JSON bodies are only included when log_bodies is set.
    """

    async def log_request(request: httpx.Request) -> None:
        logger.debug(f"--> {request.method} {request.url}")
        if log_bodies and request.headers.get("content-type", "").startswith("application/json"):
            logger.debug(f"    body: {request.content.decode('utf-8', errors='replace')}")

    async def log_response(response: httpx.Response) -> None:
        request = response.request
        logger.debug(f"<-- {response.status_code} {request.method} {request.url}")
        if log_bodies:
            await response.aread()
            logger.debug(f"    body: {response.text}")

    return {"request": [log_request], "response": [log_response]}


# =============================================================================
# API Client
# =============================================================================

class ApiClient:
    """Typed, authenticated access to the HoneyBadger backend."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        token_store: Optional[TokenStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        event_hooks: Optional[EventHooks] = None,
    ):
        self.settings = settings or get_settings()
        if token_store is None:
            token_store = TokenStore(SqliteTokenStorage(self.settings.token_db_path))
        self.token_store = token_store
        self._transport = transport
        self._event_hooks = (
            event_hooks
            if event_hooks is not None
            else logging_hooks(self.settings.log_request_bodies)
        )
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def is_authenticated(self) -> bool:
        """Whether a token is currently held."""
        return self.token_store.is_present

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=httpx.Timeout(self.settings.timeout),
                transport=self._transport,
                event_hooks=self._event_hooks,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    # === Request Plumbing ===

    async def _send(
        self,
        endpoint: Endpoint,
        *,
        path_params: Optional[dict[str, str]] = None,
        json: Optional[Any] = None,
        files: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Build and perform a single request for an endpoint."""
        headers: dict[str, str] = {}
        if files is None:
            headers["Content-Type"] = "application/json"
        if endpoint.authenticated:
            headers.update(self.token_store.authorization_header())

        path = endpoint.url_path(**(path_params or {}))
        client = await self._get_http_client()

        try:
            return await client.request(
                endpoint.method,
                path,
                headers=headers,
                json=json,
                files=files,
            )
        except httpx.RequestError as e:
            logger.warning(f"Network error on {endpoint.method} {path}: {e!r}")
            raise InvalidResponseError(f"Network error during {endpoint.method} {path}: {e}") from e

    def _classify(
        self,
        endpoint: Endpoint,
        response: httpx.Response,
        model: Optional[type[M]] = None,
        default_error: Optional[str] = None,
    ) -> Optional[M]:
        """Turn a response into a decoded payload or a taxonomy error."""
        status = response.status_code

        if status in endpoint.success_codes:
            if model is None:
                return None
            return self._decode(response, model)

        if endpoint.authenticated and status in UNAUTHORIZED_CODES:
            logger.warning(
                f"{endpoint.method} {response.request.url.path} returned {status}, clearing auth token"
            )
            self.token_store.clear()
            raise UnauthorizedError()

        message = self._error_message(response)
        if message is None:
            message = default_error or endpoint.default_error
        logger.error(f"{endpoint.method} {response.request.url.path} failed ({status}): {message}")
        raise ServerError(message)

    @staticmethod
    def _decode(response: httpx.Response, model: type[M]) -> M:
        """Decode a success body into its expected model."""
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Failed to decode {model.__name__}: {e.error_count()} error(s)")
            raise DecodingError(f"Failed to decode {model.__name__}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        """Message from a {success, message} body, if the body is one."""
        try:
            return ErrorResponse.model_validate_json(response.content).message
        except ValidationError:
            return None

    # === Authentication ===

    async def login(self, email: str, password: str) -> AuthResponse:
        """Authenticate with email and password; stores the returned token."""
        logger.info(f"Logging in user: {email}")
        body = LoginRequest(email=email, password=password).to_wire()
        response = await self._send(endpoints.LOGIN, json=body)
        auth = self._classify(endpoints.LOGIN, response, AuthResponse)
        self.token_store.set(auth.token)
        logger.info("Login successful")
        return auth

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
    ) -> AuthResponse:
        """Create an account; stores the returned token."""
        logger.info(f"Signing up user: {email}")
        body = SignupRequest(name=name, email=email, password=password, phone=phone or "").to_wire()
        response = await self._send(endpoints.SIGNUP, json=body)
        auth = self._classify(endpoints.SIGNUP, response, AuthResponse)
        self.token_store.set(auth.token)
        logger.info("Signup successful")
        return auth

    async def get_current_user(self) -> User:
        response = await self._send(endpoints.CURRENT_USER)
        return self._classify(endpoints.CURRENT_USER, response, UserResponse).user

    async def logout(self) -> None:
        """End the server session and drop the held token."""
        response = await self._send(endpoints.LOGOUT)
        self._classify(endpoints.LOGOUT, response)
        self.token_store.clear()
        logger.info("Logged out successfully")

    # === Gifts ===

    async def send_gift(
        self,
        recipient_phone: str,
        gift_type: str,
        challenge_type: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> SendGiftResponse:
        """
        Send a honey badger gift.

        Args:
            recipient_phone: Recipient's phone number
            gift_type: Kind of gift being sent
            challenge_type: Challenge the recipient must complete to unlock it
            details: Additional wire fields (recipientName, message, occasion, ...)

        Returns:
            The server's confirmation, including the tracking id when issued
        """
        payload: dict[str, Any] = dict(details or {})
        payload["recipientPhone"] = recipient_phone
        payload["giftType"] = gift_type
        if challenge_type is not None:
            payload["challengeType"] = challenge_type

        response = await self._send(endpoints.SEND_GIFT, json=payload)
        result = self._classify(endpoints.SEND_GIFT, response, SendGiftResponse)
        logger.info(f"Gift sent (tracking id: {result.tracking_id})")
        return result

    async def get_gifts(self) -> list[Gift]:
        """Gifts the current user has sent."""
        response = await self._send(endpoints.SENT_GIFTS)
        return self._classify(endpoints.SENT_GIFTS, response, GiftsResponse).gifts

    async def get_received_gifts(self) -> list[Gift]:
        """Gifts sent to the current user."""
        response = await self._send(endpoints.RECEIVED_GIFTS)
        return self._classify(endpoints.RECEIVED_GIFTS, response, GiftsResponse).gifts

    # === Approvals ===

    async def get_pending_approvals(self) -> list[PendingApproval]:
        """Challenge submissions waiting for the current user's review."""
        response = await self._send(endpoints.PENDING_APPROVALS)
        result = self._classify(endpoints.PENDING_APPROVALS, response, PendingApprovalsResponse)
        return result.pending_approvals

    async def review_submission(
        self,
        submission_id: str,
        action: Union[ReviewAction, str],
        rejection_reason: Optional[str] = None,
    ) -> None:
        """Approve or reject a challenge submission."""
        action = ReviewAction(action)
        body = ReviewSubmissionRequest(
            action=action,
            rejection_reason=rejection_reason if action is ReviewAction.REJECT else None,
        ).to_wire()

        response = await self._send(
            endpoints.REVIEW_SUBMISSION,
            path_params={"submission_id": submission_id},
            json=body,
        )
        self._classify(
            endpoints.REVIEW_SUBMISSION,
            response,
            default_error=f"Failed to {action.value} submission",
        )
        logger.info(f"Submission {submission_id} {action.value}d")

    async def approve_submission(self, submission_id: str) -> None:
        await self.review_submission(submission_id, ReviewAction.APPROVE)

    async def reject_submission(self, submission_id: str, reason: Optional[str] = None) -> None:
        await self.review_submission(submission_id, ReviewAction.REJECT, reason)

    async def submit_challenge_photo(
        self,
        tracking_id: str,
        image_data: bytes,
        filename: str = "challenge.jpg",
        content_type: str = "image/jpeg",
    ) -> ChallengeSubmissionResponse:
        """Upload a challenge photo as multipart/form-data (field 'photo')."""
        response = await self._send(
            endpoints.SUBMIT_CHALLENGE,
            path_params={"tracking_id": tracking_id},
            files={"photo": (filename, image_data, content_type)},
        )
        result = self._classify(endpoints.SUBMIT_CHALLENGE, response, ChallengeSubmissionResponse)
        logger.info(f"Challenge photo submitted for {tracking_id} (success={result.success})")
        return result

    # === Contacts ===

    async def get_contacts(self) -> list[Contact]:
        response = await self._send(endpoints.CONTACTS)
        return self._classify(endpoints.CONTACTS, response, ContactsResponse).contacts

    async def add_contact(
        self,
        name: str,
        phone: str,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Contact:
        body = AddContactRequest(name=name, phone=phone, email=email or "", notes=notes or "").to_wire()
        response = await self._send(endpoints.ADD_CONTACT, json=body)
        return self._classify(endpoints.ADD_CONTACT, response, ContactResponse).contact
