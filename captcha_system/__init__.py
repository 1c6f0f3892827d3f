"""Slide CAPTCHA service: challenge issuing and pointer-trajectory verification."""

__version__ = "1.0.0"
