"""Local identity provider.

Sign-in itself happens elsewhere (an OAuth redirect, a token exchange); this
adapter only records the resulting user id and broadcasts the change.
"""

import logging
from typing import Optional

from shelfsync.core.events import EventStream, Subscription
from shelfsync.domain.repositories import IIdentityProvider

logger = logging.getLogger(__name__)


class LocalIdentityProvider(IIdentityProvider):

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self._changes: EventStream[Optional[str]] = EventStream()

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def auth_changes(self) -> Subscription[Optional[str]]:
        return self._changes.subscribe(self._user_id, replay=True)

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id is required")
        if user_id == self._user_id:
            return
        logger.info(f"User signed in: {user_id}")
        self._user_id = user_id
        self._changes.publish(user_id)

    def sign_out(self) -> None:
        if self._user_id is None:
            return
        logger.info(f"User signed out: {self._user_id}")
        self._user_id = None
        self._changes.publish(None)

    def close(self) -> None:
        self._changes.close()
