from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time; patched in tests."""
    return datetime.now(timezone.utc)
