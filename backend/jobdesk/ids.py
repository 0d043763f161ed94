import time
import uuid


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Unique id for a generated sub-entity, e.g. ``task_3f2a...``."""
    return f"{prefix}_{uuid.uuid4().hex}"
