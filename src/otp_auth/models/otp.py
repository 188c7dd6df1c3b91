"""SQLAlchemy model for outstanding one-time codes."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from otp_auth.models.user import Base


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    SQLite hands ``DateTime(timezone=True)`` columns back naive, so naive
    values are taken to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class OTPCode(Base):
    """A one-time code issued to an email address.

    Several rows may exist per email if issuance races; readers always take
    the most recently created one.
    """

    __tablename__ = "otp_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(256), nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_otp_codes_email_created_at", "email", "created_at"),)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) < as_utc(now)

    def __repr__(self) -> str:
        return f"<OTPCode id={self.id} email={self.email!r} expires_at={self.expires_at}>"
