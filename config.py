import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "fitreward-dev-secret"
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    data_file: str = "data.json"
    uploads_dir: str = "uploads"
    base_url: str = "http://localhost:8000"
    secret_key: str = DEV_SECRET_KEY
    token_ttl_days: int = 7
    admin_token: Optional[str] = None
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        secret_key = os.getenv("SECRET_KEY")
        if not secret_key:
            logger.warning("SECRET_KEY not set, falling back to the development key")
            secret_key = DEV_SECRET_KEY

        return cls(
            data_file=os.getenv("DATA_FILE", "data.json"),
            uploads_dir=os.getenv("UPLOADS_DIR", "uploads"),
            base_url=os.getenv("BASE_URL", "http://localhost:8000").rstrip("/"),
            secret_key=secret_key,
            token_ttl_days=_int_env("TOKEN_TTL_DAYS", 7),
            admin_token=(os.getenv("ADMIN_TOKEN") or "").strip() or None,
            max_upload_bytes=_int_env("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def token_ttl_seconds(self) -> int:
        return self.token_ttl_days * 24 * 60 * 60

    def public_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path.lstrip('/')}"
