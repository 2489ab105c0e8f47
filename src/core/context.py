"""Authentication context model for typed user authentication."""

from dataclasses import dataclass
from uuid import UUID


@dataclass
class AuthenticatedUserContext:
    """Context containing the authenticated Supabase user."""

    user_id: UUID
    email: str
    full_name: str = ""

    def __post_init__(self):
        """Ensure all required fields are present and valid."""
        if not self.user_id:
            raise ValueError("User ID is required in authentication context")
