"""User and session models.

``User`` combines the backend identity with the profile row stored in the
``users`` table. Staff privilege is read from the profile's ``is_staff`` flag
only.
"""

from typing import Any

from pydantic import BaseModel, Field


class User(BaseModel):
    """Application user record."""

    id: str = Field(..., description="Identity identifier, shared with the users table")
    email: str | None = Field(None, description="Sign-in email address")
    name: str = Field(default="", description="Display name")
    phone: str = Field(default="", description="Contact phone number")
    is_staff: bool = Field(default=False, description="Whether the user may use the staff dashboard")

    def to_row(self) -> dict[str, Any]:
        """Convert to a ``users`` table row.

        Returns:
            dict: Backend-compatible representation
        """
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "is_staff": self.is_staff,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        """Create a User from a ``users`` table row.

        Null name/phone columns are normalized to empty strings.

        Args:
            row: Row dictionary returned by the backend

        Returns:
            User: Parsed model instance
        """
        return cls(
            id=row["id"],
            email=row.get("email"),
            name=row.get("name") or "",
            phone=row.get("phone") or "",
            is_staff=bool(row.get("is_staff", False)),
        )


class AuthSession(BaseModel):
    """Session tokens returned after a password sign-in."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "bearer"
    user_id: str


class Identity(BaseModel):
    """Identity record as returned by the backend auth endpoint."""

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def metadata_name(self) -> str:
        return str(self.user_metadata.get("name") or "")

    @property
    def metadata_phone(self) -> str:
        return str(self.user_metadata.get("phone") or "")
