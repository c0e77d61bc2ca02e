import json
import os
from pathlib import Path
from typing import Any


def load_json(path: str | Path) -> Any | None:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError:
        return None


def atomic_write_text(path: str | Path, text: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_suffix(f"{target.suffix}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        handle.write(text)
    os.replace(tmp_path, target)


def atomic_write_json(path: str | Path, data: Any) -> None:
    payload = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
    atomic_write_text(path, payload)
