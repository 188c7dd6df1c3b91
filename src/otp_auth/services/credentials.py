"""Credential variants accepted by register and login."""

from __future__ import annotations

from dataclasses import dataclass

from otp_auth.errors import ValidationError


@dataclass(frozen=True)
class PasswordCredential:
    password: str

    def __repr__(self) -> str:
        return "PasswordCredential(password='***')"


@dataclass(frozen=True)
class OTPCredential:
    code: str


Credential = PasswordCredential | OTPCredential


def parse_credential(password: str | None, otp: str | int | None) -> Credential:
    """Turn the optional request fields into exactly one credential.

    A password wins if both are supplied; the two are never combined.
    Numeric OTPs (JSON numbers) are accepted and stringified.
    """
    if password:
        return PasswordCredential(password=password)
    if otp is not None and str(otp).strip():
        return OTPCredential(code=str(otp))
    raise ValidationError()
