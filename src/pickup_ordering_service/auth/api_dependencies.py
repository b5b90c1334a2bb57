"""FastAPI dependencies for request authentication.

Resolves the signed-in user from the ``Authorization: Bearer`` header and
guards staff-only endpoints and the webhook endpoint.
"""

import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request

from pickup_ordering_service.auth.secret_validator import SharedSecretValidator
from pickup_ordering_service.auth.session_service import AuthService
from pickup_ordering_service.models.user_models import User
from pickup_ordering_service.services.backend_client import BackendError

logger = logging.getLogger(__name__)

REJECTED_TOKEN_STATUSES = (401, 403)


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Extract the access token from an ``Authorization: Bearer`` header.

    Args:
        authorization: Authorization header value (injected by FastAPI)

    Returns:
        The token, or None if the header is missing or not a bearer token
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_optional_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> User | None:
    """Resolve the signed-in user, allowing guests.

    A token the backend rejects (401 or 403) is treated like no token. Any
    other backend failure is reported, so a signed-in customer is never
    silently downgraded to a guest.

    Returns:
        User, or None for guests

    Raises:
        HTTPException: 502 with a notification detail if the session cannot be checked
    """
    token = get_bearer_token(authorization)
    if token is None:
        return None

    auth_service: AuthService = request.app.state.auth_service
    try:
        return await auth_service.resolve_user(token)
    except BackendError as e:
        if e.status_code in REJECTED_TOKEN_STATUSES:
            logger.warning(f"Ignoring unusable session token: {e}")
            return None
        logger.error(f"Could not resolve session: {e}", extra={"status_code": e.status_code})
        raise HTTPException(
            status_code=502,
            detail={"title": "Could not verify your session", "description": str(e)},
        ) from e


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the signed-in user.

    Raises:
        HTTPException: 401 if no valid session is presented
    """
    user = await get_optional_user(request, authorization)
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user


async def get_staff_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the signed-in staff user.

    Raises:
        HTTPException: 401 if not signed in, 403 if the user is not staff
    """
    user = await get_current_user(request, authorization)
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="You don't have permission to access this page.")
    return user


def verify_webhook_secret(
    x_webhook_secret: str | None = None,
    validator: SharedSecretValidator | None = None,
) -> str:
    """Validate the secret presented by the database change webhook.

    Args:
        x_webhook_secret: Secret from the X-Webhook-Secret header
        validator: Validator holding the accepted secrets

    Returns:
        str: The validated secret

    Raises:
        HTTPException: 401 if the secret is missing or invalid
    """
    if not x_webhook_secret:
        raise HTTPException(status_code=401, detail="Missing webhook secret")

    if validator and not validator.validate(x_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    return x_webhook_secret
