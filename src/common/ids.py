import threading
import time
from datetime import datetime

_lock = threading.Lock()
_last_id = 0


def generate_id() -> str:
    """Millisecond timestamp id, strictly increasing within this process."""
    global _last_id
    with _lock:
        candidate = time.time_ns() // 1_000_000
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
    return str(candidate)


def default_session_name(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"Session-{now.strftime('%Y-%m-%d-%H-%M-%S')}"
