"""Dual-mode (password or email OTP) authentication service."""

__version__ = "0.1.0"
