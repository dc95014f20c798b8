"""Input sanitization utilities."""
import re
from typing import Any, Optional

from web3 import Web3

from anoncheckin.core.constants import MAX_TITLE_LENGTH, MAX_UINT256
from anoncheckin.core.errors import InvalidInput


def sanitize_text(text: str, max_length: Optional[int] = None, strip_html: bool = True) -> str:
    """
    Sanitize free text before it is written to the ledger.

    Titles are public and permanent once on-chain, so HTML tags are removed
    and whitespace is normalised before submission.

    Args:
        text: The input text to sanitize
        max_length: Optional maximum length to enforce
        strip_html: Whether to strip HTML tags (default True)

    Returns:
        Sanitized text with HTML tags removed and whitespace normalized

    Raises:
        InvalidInput: If text exceeds max_length or contains dangerous patterns
    """
    if not isinstance(text, str):
        raise InvalidInput("Input must be a string")

    sanitized = text.strip()

    if max_length and len(sanitized) > max_length:
        raise InvalidInput(f"Input exceeds maximum length of {max_length} characters")

    if strip_html:
        sanitized = re.sub(r'<[^>]*>', '', sanitized)

    # Malformed tags left behind after stripping
    if '<' in sanitized or '>' in sanitized:
        raise InvalidInput("Input contains invalid HTML-like patterns")

    return re.sub(r'\s+', ' ', sanitized)


def sanitize_title(title: str) -> str:
    """Sanitize a meeting title; it must not be empty."""
    sanitized = sanitize_text(title, max_length=MAX_TITLE_LENGTH)

    if not sanitized:
        raise InvalidInput("Meeting title cannot be empty")

    return sanitized


def _positive_uint(value: Any, label: str) -> int:
    # bool is an int subclass, but True is not a meaningful identifier
    if isinstance(value, bool):
        raise InvalidInput(f"{label} must be a positive integer")

    if isinstance(value, str):
        value = value.strip()
        if not re.match(r'^[0-9]+$', value):
            raise InvalidInput(f"{label} must be a positive integer")
        value = int(value)

    if not isinstance(value, int) or value <= 0:
        raise InvalidInput(f"{label} must be a positive integer")

    if value > MAX_UINT256:
        raise InvalidInput(f"{label} is out of range")

    return value


def validate_participant_id(participant_id: Any) -> int:
    """
    Validate a pseudonymous participant identifier.

    Accepts ints and decimal strings (form input). Returns the integer id.

    Raises:
        InvalidInput: If the id is missing, not a positive integer or too large
    """
    if participant_id is None:
        raise InvalidInput("Participant id is required")
    return _positive_uint(participant_id, "Participant id")


def validate_meeting_id(meeting_id: Any) -> int:
    """Validate a ledger-assigned meeting id."""
    return _positive_uint(meeting_id, "Meeting id")


def validate_max_participants(max_participants: Any) -> int:
    """Validate a meeting capacity; must be greater than zero."""
    return _positive_uint(max_participants, "Max participants")


def normalize_address(address: str) -> str:
    """
    Validate an account address and return its checksum form.

    Raises:
        InvalidInput: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidInput(f"Invalid account address: {address!r}")
    return Web3.to_checksum_address(address)
