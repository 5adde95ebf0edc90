"""
HoneyBadger Client - Gift State Manager

Owns the cached sent gifts, received gifts and pending approvals for one
authenticated session, and keeps them consistent with the backend:

- Refreshes replace a collection wholesale on success and keep the stale
  collection on failure.
- refresh_all() fans out to the three resources concurrently and waits for
  all of them.
- A refresh requested while the same resource is already loading joins the
  outstanding request instead of issuing a second one. Refreshes that follow
  a mutation (and clear_state) supersede any outstanding request, whose
  result is then discarded.
- Review and photo-submission actions report success as a bool and update
  the cache only after the backend accepts them.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .client import ApiClient
from .config import Settings
from .errors import ClientError
from .schemas import Gift, PendingApproval
from .tokens import TokenStore

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class Resource(Enum):
    """The three independently refreshed collections."""
    SENT = "sent_gifts"
    RECEIVED = "received_gifts"
    APPROVALS = "pending_approvals"


@dataclass
class ResourceState:
    """Cached items and loading flag for one resource."""
    items: list[Any] = field(default_factory=list)
    is_loading: bool = False
    in_flight: Optional[asyncio.Task] = None
    # Bumped whenever outstanding requests must no longer write the cache.
    generation: int = 0


class GiftStateManager:
    """Single owner of the cached gift collections for a session."""

    def __init__(self, api: ApiClient):
        self.api = api
        self._resources: dict[Resource, ResourceState] = {r: ResourceState() for r in Resource}
        self._fetchers: dict[Resource, Callable[[], Awaitable[list[Any]]]] = {
            Resource.SENT: api.get_gifts,
            Resource.RECEIVED: api.get_received_gifts,
            Resource.APPROVALS: api.get_pending_approvals,
        }
        self._listeners: list[Listener] = []
        self._last_refresh: Optional[datetime] = None

    async def start(self) -> None:
        """Load initial data when a persisted session is already present."""
        if self.api.is_authenticated:
            logger.info("Existing session found, loading gifts")
            await self.refresh_all()

    async def close(self) -> None:
        """Tear down the underlying API client."""
        await self.api.close()

    # === Read-only State ===

    @property
    def sent_gifts(self) -> list[Gift]:
        return list(self._resources[Resource.SENT].items)

    @property
    def received_gifts(self) -> list[Gift]:
        return list(self._resources[Resource.RECEIVED].items)

    @property
    def pending_approvals(self) -> list[PendingApproval]:
        return list(self._resources[Resource.APPROVALS].items)

    @property
    def is_loading_sent(self) -> bool:
        return self._resources[Resource.SENT].is_loading

    @property
    def is_loading_received(self) -> bool:
        return self._resources[Resource.RECEIVED].is_loading

    @property
    def is_loading_approvals(self) -> bool:
        return self._resources[Resource.APPROVALS].is_loading

    @property
    def last_refresh(self) -> Optional[datetime]:
        """When the last full refresh cycle completed, if ever."""
        return self._last_refresh

    @property
    def pending_approvals_count(self) -> int:
        return len(self._resources[Resource.APPROVALS].items)

    @property
    def has_pending_approvals(self) -> bool:
        return self.pending_approvals_count > 0

    @property
    def is_loading(self) -> bool:
        return any(state.is_loading for state in self._resources.values())

    # === Change Notification ===

    def add_listener(self, callback: Listener) -> None:
        """Register a callback invoked with the name of each changed attribute."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, name: str) -> None:
        for callback in list(self._listeners):
            try:
                callback(name)
            except Exception as e:
                logger.error(f"State listener failed on '{name}': {e}")

    def _set_items(self, resource: Resource, items: list[Any]) -> None:
        self._resources[resource].items = list(items)
        self._notify(resource.value)

    def _set_loading(self, resource: Resource, loading: bool) -> None:
        self._resources[resource].is_loading = loading
        self._notify(f"is_loading_{resource.name.lower()}")

    # === Refresh ===

    async def refresh_all(self) -> None:
        """Refresh all three collections concurrently, then stamp last_refresh."""
        await asyncio.gather(
            self.refresh_sent_gifts(),
            self.refresh_received_gifts(),
            self.refresh_pending_approvals(),
        )
        self._last_refresh = datetime.now(timezone.utc)
        self._notify("last_refresh")

    async def refresh_sent_gifts(self) -> None:
        await self._refresh(Resource.SENT)

    async def refresh_received_gifts(self) -> None:
        await self._refresh(Resource.RECEIVED)

    async def refresh_pending_approvals(self) -> None:
        await self._refresh(Resource.APPROVALS)

    async def _refresh(self, resource: Resource, force: bool = False) -> None:
        """
        Join the outstanding refresh for a resource, or start one.

        With force, a new request is always issued and any outstanding one
        is superseded: its response was produced before the caller's change
        and is discarded when it arrives.
        """
        state = self._resources[resource]
        task = state.in_flight
        if force or task is None or task.done():
            if force and task is not None and not task.done():
                logger.debug(f"Superseding in-flight refresh of {resource.value}")
                state.generation += 1
            task = asyncio.create_task(self._load(resource, state.generation))
            state.in_flight = task
        else:
            logger.debug(f"Joining in-flight refresh of {resource.value}")

        # A caller that stops waiting must not cancel the shared request.
        await asyncio.shield(task)
        # Follow a newer request that superseded the one we joined.
        while state.in_flight is not None and state.in_flight is not task:
            task = state.in_flight
            await asyncio.shield(task)

    async def _load(self, resource: Resource, generation: int) -> None:
        state = self._resources[resource]
        if state.generation != generation:
            return
        self._set_loading(resource, True)
        try:
            items = await self._fetchers[resource]()
        except ClientError as e:
            logger.error(f"Error loading {resource.value}: {e}")
        else:
            if state.generation != generation:
                logger.debug(f"Discarding superseded {resource.value} response")
            else:
                self._set_items(resource, items)
                logger.info(f"Loaded {len(items)} {resource.value.replace('_', ' ')}")
        finally:
            if state.generation == generation:
                self._set_loading(resource, False)

    # === Approval Actions ===

    async def approve_submission(self, submission_id: str) -> bool:
        """Approve a submission; True when the backend accepted it."""
        try:
            await self.api.approve_submission(submission_id)
        except ClientError as e:
            logger.error(f"Error approving submission {submission_id}: {e}")
            return False
        await self._after_review(submission_id)
        return True

    async def reject_submission(self, submission_id: str, reason: Optional[str] = None) -> bool:
        """Reject a submission; True when the backend accepted it."""
        try:
            await self.api.reject_submission(submission_id, reason)
        except ClientError as e:
            logger.error(f"Error rejecting submission {submission_id}: {e}")
            return False
        await self._after_review(submission_id)
        return True

    async def _after_review(self, submission_id: str) -> None:
        approvals = self._resources[Resource.APPROVALS].items
        remaining = [a for a in approvals if a.submission_id != submission_id]
        if len(remaining) != len(approvals):
            self._set_items(Resource.APPROVALS, remaining)
        # The reviewed gift's status changed server-side.
        await self._refresh(Resource.SENT, force=True)

    # === Challenge Submission ===

    async def submit_challenge_photo(self, gift_id: str, image_data: bytes) -> bool:
        """Upload a challenge photo; True when the backend reports success."""
        try:
            response = await self.api.submit_challenge_photo(gift_id, image_data)
        except ClientError as e:
            logger.error(f"Error submitting challenge photo for {gift_id}: {e}")
            return False

        if not response.success:
            logger.warning(f"Challenge photo for {gift_id} was not accepted: {response.message}")
            return False

        await self._refresh(Resource.RECEIVED, force=True)
        return True

    # === Clear State (for logout) ===

    def clear_state(self) -> None:
        """
        Drop all cached data; the token is left to its own owner.

        Outstanding refreshes are invalidated rather than cancelled: they
        finish, but their results never reach the cache.
        """
        for resource in Resource:
            state = self._resources[resource]
            state.generation += 1
            state.in_flight = None
            if state.is_loading:
                self._set_loading(resource, False)
            self._set_items(resource, [])
        self._last_refresh = None
        self._notify("last_refresh")
        logger.info("Gift state cleared")


# =============================================================================
# Convenience Functions
# =============================================================================

async def create_gift_state_manager(
    settings: Optional[Settings] = None,
    token_store: Optional[TokenStore] = None,
    **client_kwargs,
) -> GiftStateManager:
    """
    Create a state manager and load data for an existing session.

    Args:
        settings: Optional configuration
        token_store: Optional token store (defaults to SQLite persistence)
        **client_kwargs: Passed through to ApiClient (transport, event_hooks)

    Returns:
        A started GiftStateManager
    """
    api = ApiClient(settings=settings, token_store=token_store, **client_kwargs)
    manager = GiftStateManager(api)
    await manager.start()
    return manager


@asynccontextmanager
async def gift_session(
    settings: Optional[Settings] = None,
    token_store: Optional[TokenStore] = None,
    **client_kwargs,
):
    """
    Context manager for a gift session.

    Usage:
        async with gift_session() as state:
            await state.refresh_all()
            print(state.sent_gifts)
    """
    manager = await create_gift_state_manager(settings, token_store, **client_kwargs)
    try:
        yield manager
    finally:
        await manager.close()
