"""File-based JSON storage.

Data layout:
  data/
    config.json          App settings (LLM connections, generator assignments,
                         feature toggles, image/audio providers, task timeout)
    saves/
      <slot>.json        One saved game: {"day": int, "state": GameState}

Slug rules: slot name → NFKC normalize → lowercase → strip quotes →
replace non-word runs with hyphen → strip leading/trailing hyphens.
Japanese slot names keep their characters.

Config: get_config() returns defaults merged with stored values.
merge_config() validates and applies partial updates without writing;
update_config() merges and persists — llm_connections replaced wholesale,
generators/features/image/audio merged key-by-key, scalars overwritten.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    saves_dir,
    slugify,
)

from .saves import (  # noqa: F401
    delete_save,
    list_saves,
    read_save,
    write_save,
)

from .config import (  # noqa: F401
    ConfigError,
    get_config,
    merge_config,
    save_config,
    update_config,
)
