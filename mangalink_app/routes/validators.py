"""Lightweight request validation helpers."""

import re
from typing import Any, Dict, List, Optional, Tuple


Rule = Tuple[str, type, Optional[int]]

# Safe characters for provider IDs (alphanumeric, dash, underscore)
PROVIDER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')

MAX_QUERY_LENGTH = 200
MAX_TITLE_LENGTH = 500


def validate_fields(payload: Dict[str, Any], rules: List[Rule]) -> Optional[str]:
    """
    Validate required fields with optional max length.

    Args:
        payload: Incoming JSON dict.
        rules: List of (field, type, max_length or None).

    Returns:
        None if valid, or error message string.
    """
    for field, expected_type, max_len in rules:
        if field not in payload:
            return f"Missing required field: {field}"
        value = payload.get(field)
        # bool is an int subclass; never accept it for numeric fields
        if isinstance(value, bool) and expected_type is not bool:
            return f"Field '{field}' must be {_type_name(expected_type)}"
        if not isinstance(value, expected_type):
            return f"Field '{field}' must be {_type_name(expected_type)}"
        if max_len is not None and len(str(value)) > max_len:
            return f"Field '{field}' exceeds max length {max_len}"
    return None


def _type_name(expected_type) -> str:
    if isinstance(expected_type, tuple):
        return ' or '.join(t.__name__ for t in expected_type)
    return expected_type.__name__


def validate_provider_id(provider_id: Optional[str], known: Optional[List[str]] = None) -> Optional[str]:
    """
    Validate a provider ID against the safe character pattern and, if given,
    the registered providers.

    Returns:
        None if valid, or error message string.
    """
    if not provider_id:
        return "Missing provider ID"

    if not PROVIDER_ID_PATTERN.match(provider_id):
        return "Invalid provider ID format"

    if known is not None and provider_id not in known:
        return f"Unknown provider: {provider_id}"

    return None


def sanitize_string(value: Any, max_length: int = MAX_QUERY_LENGTH) -> str:
    """Strip control characters and collapse whitespace."""
    if value is None:
        return ''
    text = str(value)
    text = re.sub(r'[\x00-\x1f\x7f]', ' ', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text[:max_length]
