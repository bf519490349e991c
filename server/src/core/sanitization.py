import re
import secrets
import string

from config import settings
from core.errors import ValidationError

CONTROL_CHARS_PATTERN = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
DELIMITER_PATTERN = re.compile(r'[\[\]<>{}\n\r\t]')
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits

MAX_QUERY_LENGTH = 100


def sanitize_display_name(name: str | None) -> str:
    """Clean a display name and enforce the length cap."""
    if not name:
        raise ValidationError("Please enter a display name")

    name = CONTROL_CHARS_PATTERN.sub('', name)
    name = DELIMITER_PATTERN.sub('', name)
    name = " ".join(name.split())

    if not name:
        raise ValidationError("Please enter a display name")

    return name[:settings.DISPLAY_NAME_MAX_LENGTH]


def normalize_room_code(code: str | None) -> str:
    """Room codes are case-insensitive; the stored form is uppercase."""
    if not code or not code.strip():
        raise ValidationError("Please enter both name and room code")

    code = code.strip().upper()
    if len(code) != settings.ROOM_CODE_LENGTH or any(c not in ROOM_CODE_ALPHABET for c in code):
        raise ValidationError(
            f"Room code must be {settings.ROOM_CODE_LENGTH} letters or digits"
        )
    return code


def generate_room_code(length: int | None = None) -> str:
    length = length or settings.ROOM_CODE_LENGTH
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def sanitize_query(query: str | None) -> str:
    if not query:
        return ""
    query = CONTROL_CHARS_PATTERN.sub('', query).strip()
    return query[:MAX_QUERY_LENGTH]
