import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB = "data/merchants.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"


@dataclass(frozen=True)
class Settings:
    db: str
    log_level: str
    log_dir: Path


def load_env(env_path: Optional[Path] = None) -> bool:
    """Load .env from the project root if present.

    Values already set in the process environment win over the file.
    Returns True when a file was found.
    """
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return False
    load_dotenv(dotenv_path=env_path, override=False)
    return True


def get_settings() -> Settings:
    """Read configuration from the environment, falling back to defaults."""
    return Settings(
        db=os.getenv("MERCHANT_DEDUPE_DB", DEFAULT_DB),
        log_level=os.getenv("MERCHANT_DEDUPE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        log_dir=Path(os.getenv("MERCHANT_DEDUPE_LOG_DIR", DEFAULT_LOG_DIR)),
    )
