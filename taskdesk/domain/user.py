"""User domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field

from taskdesk.core.config import Constants


class UserRole(StrEnum):
    """User role in the team."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID from database")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Login email")
    role: UserRole = Field(default=UserRole.VIEWER, description="User role in the team")
    can_view_all_tasks: bool = Field(default=False, description="May list tasks assigned to others")
    created: str | None = Field(default=None, description="Creation timestamp")


class Actor(BaseModel):
    """Authenticated caller of a task operation, resolved by the auth layer."""

    id: str = Field(..., description="User ID of the caller")
    role: UserRole = Field(default=UserRole.VIEWER, description="Role of the caller")
    can_view_all_tasks: bool = Field(default=False, description="May list tasks assigned to others")

    @property
    def is_elevated(self) -> bool:
        """Whether this actor may mutate any task."""
        return self.role in Constants.ELEVATED_ROLES
