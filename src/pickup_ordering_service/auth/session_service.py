"""Authentication service.

Wraps the backend's session-based authentication and maps backend identities
to application ``User`` records backed by the ``users`` table.
"""

import logging

from pickup_ordering_service.models.user_models import AuthSession, Identity, User
from pickup_ordering_service.repositories.table_repositories import UserRepository
from pickup_ordering_service.services.backend_client import BackendClient, BackendError

logger = logging.getLogger(__name__)


class AuthService:
    """Service for sign-up, sign-in, sign-out and user resolution.

    Staff privilege is read from the stored ``is_staff`` flag, which is only
    changed through ``set_staff``. It is never inferred from the email address.
    """

    def __init__(
        self,
        client: BackendClient,
        user_repository: UserRepository,
        oauth_redirect_url: str | None = None,
    ) -> None:
        """Initialize the AuthService.

        Args:
            client: Backend client for auth endpoints
            user_repository: Repository for user profile rows
            oauth_redirect_url: Callback URL passed to OAuth providers
        """
        self.client = client
        self.user_repository = user_repository
        self.oauth_redirect_url = oauth_redirect_url

    async def sign_up(self, email: str, password: str, name: str, phone: str = "") -> User:
        """Register an email/password account and its profile row.

        Args:
            email: Email address
            password: Password
            name: Display name
            phone: Contact phone number

        Returns:
            The created user, never staff

        Raises:
            BackendError: If the identity or the profile row cannot be created
        """
        data = await self.client.sign_up(email, password, {"name": name, "phone": phone})
        identity_data = data.get("user") or data
        if not identity_data.get("id"):
            raise BackendError("Sign-up did not return a user")

        user = User(id=identity_data["id"], email=email, name=name, phone=phone, is_staff=False)
        created = await self.user_repository.create_user(user)
        logger.info(f"Registered user {created.id}")
        return created

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password.

        Raises:
            BackendError: If the credentials are rejected
        """
        data = await self.client.sign_in_with_password(email, password)
        user_data = data.get("user") or {}
        session = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            token_type=data.get("token_type", "bearer"),
            user_id=user_data.get("id", ""),
        )
        logger.info(f"User {session.user_id} signed in")
        return session

    def oauth_url(self, provider: str) -> str:
        """Authorize URL for an OAuth provider sign-in (e.g., "google")."""
        return self.client.oauth_authorize_url(provider, redirect_to=self.oauth_redirect_url)

    async def sign_out(self, access_token: str) -> None:
        await self.client.sign_out(access_token)

    async def resolve_user(self, access_token: str) -> User:
        """Map a session token to the application user.

        On the first sign-in (e.g., after OAuth) no profile row exists yet; one
        is created from the identity metadata. A profile insert failure is
        logged and the user is still returned from identity data.

        Args:
            access_token: Bearer token of the session

        Returns:
            The signed-in user

        Raises:
            BackendError: If the token is invalid or the profile lookup fails
        """
        identity = Identity(**await self.client.get_user(access_token))

        profile = await self.user_repository.get_user(identity.id)
        if profile is not None:
            # Email comes from the identity, which is authoritative
            return profile.model_copy(update={"email": identity.email or profile.email})

        user = User(
            id=identity.id,
            email=identity.email,
            name=identity.metadata_name,
            phone=identity.metadata_phone,
            is_staff=False,
        )
        try:
            await self.user_repository.create_user(user)
            logger.info(f"Created profile for first sign-in of user {user.id}")
        except BackendError as e:
            logger.error(f"Error creating user profile for {user.id}: {e}")
        return user

    async def set_staff(self, user_id: str, is_staff: bool) -> User | None:
        """Grant or revoke staff privilege.

        Returns:
            Updated user, or None if the user has no profile
        """
        user = await self.user_repository.set_staff(user_id, is_staff)
        if user is not None:
            logger.info(f"Set staff={is_staff} for user {user_id}")
        return user
