from __future__ import annotations
from pathlib import Path
import os

APP_NAME = "daynotes"
DATABASE_FILENAME = "daynotes.db"
PREFERENCES_FILENAME = "preferences.json"

# identifier shared by the keyring entry and the preference-file backup
KEY_STORAGE_KEY = "daynotes_db_key"
KEYRING_SERVICE = APP_NAME

TITLE_MAX_LENGTH = 120


def data_dir() -> Path:
    env_home = os.getenv("DAYNOTES_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / f".{APP_NAME}"


def db_path() -> Path:
    env_path = os.getenv("DAYNOTES_DB_PATH")
    if env_path:
        return Path(env_path)
    return data_dir() / DATABASE_FILENAME


def preferences_path() -> Path:
    return data_dir() / PREFERENCES_FILENAME
