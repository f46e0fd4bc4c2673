"""
Input validation utilities for the FuelGo API.

Raise domain ValidationError (400) with a short message so handlers can call
them inline.
"""
import re
from typing import Type

from domain.enums import FuelType
from domain.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
_TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address, rejecting obvious garbage."""
    value = (email or "").strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValidationError("Please enter a valid email", field="email")
    return value


def normalize_phone(phone: str) -> str:
    """Strip spaces and dashes; keep an optional leading +."""
    value = re.sub(r"[\s\-()]", "", phone or "")
    if not _PHONE_RE.match(value):
        raise ValidationError("Please enter a valid phone number", field="phoneNumber")
    return value


def validate_password(password: str, min_length: int) -> str:
    if not password or len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters", field="password"
        )
    return password


def validate_coordinates(lat: float, lng: float) -> tuple[float, float]:
    if lat is None or lng is None:
        raise ValidationError("Latitude and longitude are required")
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90", field="lat")
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180", field="lng")
    return lat, lng


def validate_time_of_day(value: str, field: str) -> str:
    if not _TIME_RE.match(value or ""):
        raise ValidationError("Time must be in HH:MM format", field=field)
    return value


def validate_fuel_type(value: str) -> str:
    """Accept fuel types case-insensitively ("diesel" → "DIESEL")."""
    candidate = (value or "").strip().upper()
    try:
        return FuelType(candidate).value
    except ValueError:
        raise ValidationError("Invalid fuel type", field="type")


def parse_enum(enum_cls: Type, value: str, field: str) -> str:
    """Validate `value` against a str Enum, case-insensitive on the stored casing."""
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    for member in enum_cls:
        if member.value.lower() == str(value).strip().lower():
            return member.value
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {field}. Allowed: {allowed}", field=field)
