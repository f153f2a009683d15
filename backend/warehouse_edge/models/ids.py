from __future__ import annotations

import uuid


def new_id(prefix: str) -> str:
    """Readable string primary key, e.g. 'mr-3f9c0a1b2d4e'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
