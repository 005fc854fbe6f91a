from .filesystem import atomic_write_text, backups_dir_for
from .map_files import (
    CorruptMapFileError,
    MapFileError,
    encode_map,
    latest_backup_for,
    load_map_file,
    quarantine_corrupt_file,
    save_map_file,
)
from .settings_store import load_settings, save_settings

__all__ = ["atomic_write_text",
           "backups_dir_for",
           "CorruptMapFileError",
           "MapFileError",
           "encode_map",
           "latest_backup_for",
           "load_map_file",
           "quarantine_corrupt_file",
           "save_map_file",
           "load_settings",
           "save_settings",
           ]
