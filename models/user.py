import enum

from sqlalchemy import Boolean, Column, Enum, String
from sqlalchemy.orm import relationship

from models.base_model import Base, BaseModel, SoftDeleteMixin


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    REVIEWER = "REVIEWER"
    APPLICANT = "APPLICANT"


class User(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "users"
    # Stored normalized (trimmed, lower-cased); uniqueness is case-insensitive by construction
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(20), nullable=True)
    role = Column(Enum(Role, name="user_role"), nullable=False, default=Role.APPLICANT)
    is_active = Column(Boolean, nullable=False, default=True)
    is_email_verified = Column(Boolean, nullable=False, default=False)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        passive_deletes=True,
    )

    @property
    def can_authenticate(self) -> bool:
        """Inactive or soft-deleted accounts never log in or refresh."""
        return bool(self.is_active) and self.deleted_at is None

    def __repr__(self):
        return f"<User id={self.id} role={self.role}>"
