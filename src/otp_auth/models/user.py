"""SQLAlchemy User model."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class User(Base):
    """A registered identity.

    ``password_hash`` is only set for accounts that registered with a
    password; OTP-only accounts keep it ``NULL`` and can never pass a
    password login.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(
        String(128), nullable=True, doc="bcrypt hash, NULL for OTP-only accounts"
    )
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
