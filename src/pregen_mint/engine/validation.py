"""Identifier validation and normalization."""

import re
from typing import Optional, Tuple

import structlog

from ..schemas.bases import IdentifierKind
from .exceptions import ValidationError

log = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+\d{2,15}$")

MISSING_IDENTIFIER = "Either email or phone is required"
INVALID_EMAIL = "Invalid email format"
INVALID_PHONE = "Invalid phone format. Use international format (e.g. +5511999999999)"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    return phone.strip()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone))


def validate_identifier(
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Tuple[str, IdentifierKind]:
    """
    Validate the request identifiers and return the canonical one.

    Every supplied field is validated. When both are supplied the email is
    used and a warning is logged, since the caller's intent is ambiguous.

    Raises:
        ValidationError: If no identifier is supplied or a supplied one is malformed.
    """
    if not email and not phone:
        raise ValidationError(MISSING_IDENTIFIER)

    normalized_email = None
    normalized_phone = None

    if email:
        normalized_email = normalize_email(email)
        if not is_valid_email(normalized_email):
            raise ValidationError(INVALID_EMAIL)

    if phone:
        normalized_phone = normalize_phone(phone)
        if not is_valid_phone(normalized_phone):
            raise ValidationError(INVALID_PHONE)

    if normalized_email and normalized_phone:
        log.warning("identifier_ambiguous", email=normalized_email, phone=normalized_phone, using="email")

    if normalized_email:
        return normalized_email, IdentifierKind.EMAIL
    return normalized_phone, IdentifierKind.PHONE
