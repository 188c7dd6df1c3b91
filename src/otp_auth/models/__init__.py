"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from otp_auth.models.otp import OTPCode
from otp_auth.models.user import Base, User

__all__ = ["Base", "OTPCode", "User"]
