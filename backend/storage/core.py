"""Storage initialization, path helpers, and slug utilities."""

import re
import unicodedata
from pathlib import Path

_data_dir: Path | None = None


def slugify(name: str) -> str:
    """Convert a save-slot name to a filesystem-safe slug.

    "Before the Siege" → "before-the-siege", "セーブ 1" → "セーブ-1"
    """
    text = unicodedata.normalize("NFKC", name or "")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)  # strip apostrophes/quotes before hyphenation
    text = re.sub(r"[^\w]+", "-", text)
    text = text.strip("-_")
    return text or "untitled"


def init_storage(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    saves_dir().mkdir(exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def saves_dir() -> Path:
    return data_dir() / "saves"
