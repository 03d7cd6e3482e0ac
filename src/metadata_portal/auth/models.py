"""
Authentication Models

This module defines the strongly-typed caller context used throughout the
portal after bearer-token verification.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class UserContext(BaseModel):
    """
    Authenticated user derived from a verified JWT.
    """

    user_id: str = Field(
        ...,
        min_length=1,
        description="Identifier assigned by the identity provider.",
    )

    roles: List[str] = Field(
        default_factory=list,
        description="Portal roles granted to the user.",
    )

    model_config = ConfigDict(
        frozen=True,                # Makes UserContext immutable after creation
        extra="forbid",             # Prevents claim injection via unexpected fields
    )


@dataclass(frozen=True)
class Viewer:
    """
    The caller of a search or record operation.

    `can_view_drafts` is decided by the permission checker at the HTTP
    boundary; services only consume the flag.
    """

    user: Optional[UserContext] = None
    can_view_drafts: bool = False

    @property
    def user_id(self) -> Optional[str]:
        return self.user.user_id if self.user else None


ANONYMOUS = Viewer()
