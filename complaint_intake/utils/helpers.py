"""
Utility helpers for the complaint intake system

Simple utility functions for ID and timestamp generation.
"""

import uuid
from datetime import datetime, timezone


def generate_session_id(short=True):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'a3f7e2b9'

        >>> generate_session_id(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def format_reference_number(session_id):
    """
    Format a session ID as a user-facing complaint reference

    Examples:
        >>> format_reference_number('a3f7e2b9')
        'CMP-A3F7E2B9'
    """
    return f"CMP-{session_id[:8].upper()}"


def utc_timestamp():
    """Current UTC time as ISO 8601 string"""
    return datetime.now(timezone.utc).isoformat()
