"""
Column default helpers shared by the models.
"""

import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time in UTC, with microsecond precision."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Opaque identifier for a new document."""
    return uuid.uuid4().hex
