"""Save slots: one JSON file per slot under data/saves/."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .core import saves_dir, slugify


def _slot_path(slot: str) -> Path:
    return saves_dir() / f"{slugify(slot)}.json"


def list_saves() -> list[dict[str, Any]]:
    """Slot summaries ({slot, day, saved_at}), sorted by slot name."""
    results = []
    for path in sorted(saves_dir().glob("*.json")):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            continue
        results.append({
            "slot": path.stem,
            "day": data.get("day"),
            "saved_at": datetime.fromtimestamp(path.stat().st_mtime, timezone.utc).isoformat(),
        })
    return results


def read_save(slot: str) -> str | None:
    """Raw save text for a slot, or None if the slot is empty."""
    path = _slot_path(slot)
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def write_save(slot: str, text: str) -> str:
    """Write save text to a slot, replacing any previous save. Returns the slot slug."""
    path = _slot_path(slot)
    path.write_text(text, encoding="utf-8")
    return path.stem


def delete_save(slot: str) -> bool:
    path = _slot_path(slot)
    if not path.is_file():
        return False
    path.unlink()
    return True
