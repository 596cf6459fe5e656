"""File-based JSON storage for engine settings.

Data layout:
  data/
    config.json    Engine settings (scan depths, collections, debug, digest template)

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates: the per-chat and per-character
scan-depth maps are merged key-by-key (a null value removes the key),
scalars and collection lists are overwritten.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
)

from .config import (  # noqa: F401
    SettingsError,
    get_config,
    get_settings,
    update_config,
)
