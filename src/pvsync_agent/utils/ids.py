"""
Identifier generation.
Collection keys are UUID v7 (time-ordered) so that key order matches insertion order.
"""

from uuid import UUID

from uuid6 import uuid7

SERVICE_ID_PREFIX = "urn:moat:"
SERVICE_ID_SUFFIX = ":1.0"


def generate_entry_key() -> str:
    """
    Generate a unique key for a collection entry.

    Returns:
        UUID v7 string (lowercase with hyphens)
    """
    return str(uuid7())


def validate_entry_key(key: str) -> bool:
    """Return True if key is a valid UUID string."""
    try:
        UUID(key)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def create_service_id(urn: str, service_name: str) -> str:
    """
    Build the notification service id for an application.

    Format: urn:moat:{urn}:{service_name}:1.0

    Example:
        >>> create_service_id("9999d129-5ba5-4912-963e-0edecee52664", "save-data")
        'urn:moat:9999d129-5ba5-4912-963e-0edecee52664:save-data:1.0'
    """
    if not urn or not service_name:
        raise ValueError("urn and service_name are required")
    return f"{SERVICE_ID_PREFIX}{urn}:{service_name}{SERVICE_ID_SUFFIX}"
