# ahamai/config.py
import os
import sys
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

DEFAULT_MODEL = "openai-compatible:gpt-4o"
DEFAULT_API_BASE_URL = "https://longcat-openai-api.onrender.com/v1"


def default_data_dir() -> Path:
    # Persistent, writeable location for the DB
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or str(Path.home())
        return Path(base) / "AhamAI"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "AhamAI"
    base = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / "ahamai"


# ------------------------------
# Load Secrets
# ------------------------------
# Priority order:
# 1. AHAMAI_DATA_DIR/secret.env if AHAMAI_DATA_DIR is set and file exists
# 2. Fallback to repo root secret.env
def load_secrets() -> None:
    """Load secrets from the appropriate location based on environment."""
    data_dir_env = os.getenv("AHAMAI_DATA_DIR")
    if data_dir_env:
        data_dir_path = Path(data_dir_env) / "secret.env"
        if data_dir_path.exists():
            load_dotenv(dotenv_path=data_dir_path)
            return

    load_dotenv(dotenv_path=PROJECT_ROOT / "secret.env")


# Note: values are read with os.getenv() on every call so a changed
# environment is picked up without a restart.

def data_dir() -> Path:
    return Path(os.getenv("AHAMAI_DATA_DIR") or default_data_dir())


def db_path() -> str:
    """
    Priority:
    1. AHAMAI_DB_PATH - exact path if set
    2. AHAMAI_DATA_DIR (or the platform default) - <dir>/ahamai.db
    """
    if os.getenv("AHAMAI_DB_PATH"):
        return os.environ["AHAMAI_DB_PATH"]
    return str(data_dir() / "ahamai.db")


def api_base_url() -> str:
    return (os.getenv("AHAMAI_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/")


def api_key() -> Optional[str]:
    return os.getenv("AHAMAI_API_KEY")


def default_model() -> str:
    return os.getenv("AHAMAI_DEFAULT_MODEL") or DEFAULT_MODEL


def http_timeout() -> float:
    raw = os.getenv("AHAMAI_HTTP_TIMEOUT")
    try:
        return float(raw) if raw else 10.0
    except ValueError:
        return 10.0


def provider_key(name: str, default: Optional[str] = None) -> Optional[str]:
    """Look up a third-party API key such as OCR_SPACE_API_KEY."""
    return os.getenv(name) or default


def configure_logging() -> None:
    level = (os.getenv("AHAMAI_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
