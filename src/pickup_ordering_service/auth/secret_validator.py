"""Shared-secret validation for the database change webhook."""

import hmac


class SharedSecretValidator:
    """Validates the secret the backend sends with webhook requests.

    Several secrets may be configured at once so the secret can be rotated
    without downtime.
    """

    def __init__(self, secrets: list[str]) -> None:
        """Initialize validator with the accepted secrets.

        Args:
            secrets: List of accepted secret strings

        Raises:
            ValueError: If secrets list is empty
        """
        if not secrets:
            raise ValueError("At least one webhook secret must be provided")

        self.secrets = set(secrets)

    def validate(self, secret: str) -> bool:
        """Validate a presented secret.

        Args:
            secret: The secret from the request header

        Returns:
            bool: True if it matches an accepted secret, False otherwise
        """
        return any(hmac.compare_digest(secret, accepted) for accepted in self.secrets)
