"""Base Pydantic schemas and helpers for kbchat models."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class KBChatBaseModel(BaseModel):
    """Base Pydantic model for all schemas with common configuration."""

    model_config = ConfigDict(
        # Allow conversion from plain objects
        from_attributes=True,
        # Validate on assignment
        validate_assignment=True,
        # Use enum values instead of enum members
        use_enum_values=True,
        str_strip_whitespace=True,
    )


class FrozenModel(KBChatBaseModel):
    """Immutable schema; instances are hashable and never mutated after load."""

    model_config = ConfigDict(frozen=True)


def generate_id(prefix: str = "") -> str:
    """Generate a prefixed UUID.

    Args:
        prefix: Optional prefix for the ID (e.g., "msg_", "sess_")

    Returns:
        Prefixed UUID string
    """
    uid = str(uuid.uuid4())
    return f"{prefix}{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)
