"""
User Models

Portal users: reviewers at each level of the network and school administrators.
"""

from enum import Enum

from sqlalchemy import Boolean, String, Text
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import Mapped, mapped_column

from kys_portal.modules.shared import BaseModel


class UserRole(str, Enum):
    """User roles in the portal, from widest to narrowest jurisdiction."""

    GLOBAL_ADMIN = "global-admin"
    COUNTRY_ADMIN = "country-admin"
    STATE_ADMIN = "state-admin"
    LGA_ADMIN = "lga-admin"
    SCHOOL_ADMIN = "school-admin"


REVIEWER_ROLES = frozenset(
    {
        UserRole.GLOBAL_ADMIN,
        UserRole.COUNTRY_ADMIN,
        UserRole.STATE_ADMIN,
        UserRole.LGA_ADMIN,
    }
)


class User(BaseModel):
    """
    Portal user.

    Reviewers carry the jurisdiction they administer (country, state, LGA).
    A global admin has no jurisdiction; a school admin owns applications.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        ENUM(
            UserRole,
            name="user_role",
            create_type=True,
            values_callable=lambda roles: [role.value for role in roles],
        ),
        nullable=False,
        default=UserRole.SCHOOL_ADMIN,
    )

    # Jurisdiction (NULL means unrestricted at that level)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lga: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
