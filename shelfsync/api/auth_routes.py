"""Sign-in state routes.

The identity provider's own flow (OAuth redirect, token exchange) happens
outside this service; these endpoints only hand over the resulting user id
and wait until the sync coordinator has caught up.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from shelfsync.api.schemas import AuthStatusResponse, SignInRequest
from shelfsync.core.dependencies import get_identity_provider, get_sync_coordinator
from shelfsync.domain.services import ISyncCoordinator
from shelfsync.infrastructure.identity.local import LocalIdentityProvider

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

Identity = Annotated[LocalIdentityProvider, Depends(get_identity_provider)]
Coordinator = Annotated[ISyncCoordinator, Depends(get_sync_coordinator)]


def _status(identity: LocalIdentityProvider, coordinator: ISyncCoordinator) -> AuthStatusResponse:
    return AuthStatusResponse(
        user_id=identity.current_user_id,
        state=coordinator.state,
        live=coordinator.live,
    )


@router.post("/signin", response_model=AuthStatusResponse)
async def signin(body: SignInRequest, identity: Identity, coordinator: Coordinator) -> AuthStatusResponse:
    """Sign in and run reconciliation before returning."""
    identity.sign_in(body.user_id)
    await coordinator.handle_auth_change(identity.current_user_id)
    return _status(identity, coordinator)


@router.post("/signout", response_model=AuthStatusResponse)
async def signout(identity: Identity, coordinator: Coordinator) -> AuthStatusResponse:
    """Sign out. Local records are kept; nothing is deleted remotely."""
    identity.sign_out()
    await coordinator.handle_auth_change(identity.current_user_id)
    return _status(identity, coordinator)


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(identity: Identity, coordinator: Coordinator) -> AuthStatusResponse:
    return _status(identity, coordinator)
