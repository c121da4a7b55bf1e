import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from minilib import __version__

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Application settings
    app_name: str = os.getenv("APP_NAME", "Mini Library Manager")
    app_version: str = os.getenv("APP_VERSION", __version__)
    debug: bool = _env_flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()

    # Storage settings
    data_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")
    storage_backend: str = os.getenv("LIBRARY_STORAGE", "sqlite").lower()  # sqlite | memory

    # Validation bounds for publication year (inclusive)
    min_year: int = int(os.getenv("MIN_BOOK_YEAR", "1000"))
    max_year: int = int(os.getenv("MAX_BOOK_YEAR", "2030"))

    # CLI output: plain | json | rich
    output_mode: Optional[str] = os.getenv("LIB_CLI_OUTPUT")


settings = Settings()
