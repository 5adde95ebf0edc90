"""
HoneyBadger Client - Auth Session

Coordinates login, signup and logout with the gift state so that cached data
never outlives the user it was loaded for.
"""

import asyncio
import logging
from typing import Optional

from .client import ApiClient
from .errors import ClientError
from .schemas import User
from .state import GiftStateManager

logger = logging.getLogger(__name__)


class AuthSession:
    """The signed-in user and the flows that change it."""

    def __init__(self, api: ApiClient, state: GiftStateManager):
        self.api = api
        self.state = state
        self.current_user: Optional[User] = None
        self.error_message: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.api.is_authenticated and self.current_user is not None

    async def start(self) -> None:
        """Resume a persisted session: load the user and gifts together."""
        if not self.api.is_authenticated:
            return
        await asyncio.gather(self.load_current_user(), self.state.refresh_all())

    async def load_current_user(self) -> Optional[User]:
        try:
            user = await self.api.get_current_user()
        except ClientError as e:
            logger.error(f"Failed to load user: {e}")
            self.current_user = None
            return None
        self.current_user = user
        logger.info(f"Loaded current user: {user.name}")
        return user

    async def login(self, email: str, password: str) -> User:
        """Log in, replacing any previous user's cached data."""
        self.error_message = None
        try:
            response = await self.api.login(email, password)
        except ClientError as e:
            self.error_message = str(e)
            logger.error(f"Login error: {e}")
            raise
        await self._begin(response.user)
        return response.user

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
    ) -> User:
        """Create an account and start a session for it."""
        self.error_message = None
        try:
            response = await self.api.signup(name, email, password, phone)
        except ClientError as e:
            self.error_message = str(e)
            logger.error(f"Signup error: {e}")
            raise
        await self._begin(response.user)
        return response.user

    async def _begin(self, user: User) -> None:
        self.state.clear_state()
        self.current_user = user
        logger.info(f"Signed in as {user.name}")
        await self.state.refresh_all()

    async def logout(self) -> None:
        """Log out; local state is cleared even if the backend call fails."""
        try:
            await self.api.logout()
        except ClientError as e:
            logger.warning(f"Logout error (clearing anyway): {e}")
            self.api.token_store.clear()
        self.current_user = None
        self.error_message = None
        self.state.clear_state()
