import logging
import os
import re
import sys
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_ADMIN_EMAILS = ["admin@vengase.com", "test@admin.vengase.com"]

_SIZE_UNITS = {"": 1, "B": 1, "K": 1024, "KB": 1024, "M": 1024 ** 2, "MB": 1024 ** 2, "G": 1024 ** 3, "GB": 1024 ** 3}


def parse_size(value: str) -> int:
    """Parse '5MB', '512KB' or a plain byte count."""
    match = re.fullmatch(r"\s*(\d+)\s*([KMG]?B?)\s*", value.upper())
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit]


def _split(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    app_env: str = "development"
    port: int = 5000

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "vengase"
    storage_bucket: str = "product-images"

    jwt_secret: str = "dev-secret-change-me"
    token_expire_minutes: int = 60

    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"])
    rate_limit_window: int = 15  # minutes
    rate_limit_max_requests: int = 100
    max_file_size: int = 5 * 1024 * 1024

    image_dir: str = "public/images"
    upload_dir: str = "public/uploads"
    admin_emails: List[str] = Field(default_factory=lambda: list(DEFAULT_ADMIN_EMAILS))

    log_dir: Optional[str] = None
    seed_on_startup: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            port=int(os.getenv("PORT", 5000)),
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "vengase"),
            storage_bucket=os.getenv("STORAGE_BUCKET", "product-images"),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            token_expire_minutes=int(os.getenv("TOKEN_EXPIRE_MINUTES", 60)),
            allowed_origins=_split(os.getenv("ALLOWED_ORIGINS"), ["http://localhost:5173", "http://localhost:3000"]),
            rate_limit_window=int(os.getenv("RATE_LIMIT_WINDOW", 15)),
            rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", 100)),
            max_file_size=parse_size(os.getenv("MAX_FILE_SIZE", "5MB")),
            image_dir=os.getenv("IMAGE_DIR", "public/images"),
            upload_dir=os.getenv("UPLOAD_DIR", "public/uploads"),
            admin_emails=_split(os.getenv("ADMIN_EMAILS"), DEFAULT_ADMIN_EMAILS),
            log_dir=os.getenv("LOG_DIR") or None,
            seed_on_startup=os.getenv("SEED_ON_STARTUP", "false").lower() in ("1", "true", "yes"),
        )


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the root logger. Safe to call more than once."""
    log = logging.getLogger()
    log.setLevel(logging.INFO if settings.is_production else logging.DEBUG)
    if log.handlers:
        return log

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    log.addHandler(handler)

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
        app_log = logging.FileHandler(os.path.join(settings.log_dir, "app.log"))
        app_log.setLevel(logging.INFO)
        app_log.setFormatter(formatter)
        error_log = logging.FileHandler(os.path.join(settings.log_dir, "error.log"))
        error_log.setLevel(logging.ERROR)
        error_log.setFormatter(formatter)
        log.addHandler(app_log)
        log.addHandler(error_log)

    log.debug("Logging configured")
    return log
