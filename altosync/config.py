# altosync/config.py
"""Runtime settings loaded from the environment (and an optional ``.env``)."""
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


@dataclass
class ImageSizes:
    thumb_width: int = 170
    thumb_height: int = 110
    medium_width: int = 600
    medium_height: int = 370
    quality: int = 90

    def __post_init__(self):
        self.quality = max(1, min(100, int(self.quality)))


@dataclass
class Settings:
    database_url: str = "sqlite:///alto_sync.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    api_base_url: str = ""
    api_username: str = ""
    api_password: str = ""
    token_file: str = "tokens.json"
    token_ttl: int = 3600
    token_buffer: int = 60
    http_timeout: int = 30
    http_connect_retries: int = 2

    image_base_path: str = "images/osproperty/properties"
    image_sizes: ImageSizes = field(default_factory=ImageSizes)
    resize_lock_file: str = ".resize_images.lock"

    import_batch_size: int = 50
    default_country: str = "United Kingdom"
    default_currency: str = "GBP"

    scheduler_enabled: bool = False
    sync_interval_hours: int = 1

    @property
    def base_url(self) -> str:
        # the base url must end with a slash so endpoints can be appended
        if self.api_base_url and not self.api_base_url.endswith("/"):
            return self.api_base_url + "/"
        return self.api_base_url

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URL") or cls.database_url
        return cls(
            database_url=normalize_database_url(database_url),
            db_pool_size=_env_int("DB_POOL_SIZE", 5),
            db_max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
            api_base_url=os.getenv("ALTO_API_BASE_URL", ""),
            api_username=os.getenv("ALTO_API_USERNAME", ""),
            api_password=os.getenv("ALTO_API_PASSWORD", ""),
            token_file=os.getenv("ALTO_TOKEN_FILE", "tokens.json"),
            token_ttl=_env_int("ALTO_TOKEN_TTL", 3600),
            token_buffer=_env_int("ALTO_TOKEN_BUFFER", 60),
            http_timeout=_env_int("HTTP_TIMEOUT", 30),
            http_connect_retries=_env_int("HTTP_CONNECT_RETRIES", 2),
            image_base_path=os.getenv("IMAGE_BASE_PATH", "images/osproperty/properties"),
            image_sizes=ImageSizes(
                thumb_width=_env_int("IMAGE_THUMB_WIDTH", 170),
                thumb_height=_env_int("IMAGE_THUMB_HEIGHT", 110),
                medium_width=_env_int("IMAGE_MEDIUM_WIDTH", 600),
                medium_height=_env_int("IMAGE_MEDIUM_HEIGHT", 370),
                quality=_env_int("IMAGE_QUALITY", 90),
            ),
            resize_lock_file=os.getenv("RESIZE_LOCK_FILE", ".resize_images.lock"),
            import_batch_size=_env_int("IMPORT_BATCH_SIZE", 50),
            default_country=os.getenv("DEFAULT_COUNTRY", "United Kingdom"),
            default_currency=os.getenv("DEFAULT_CURRENCY", "GBP"),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", False),
            sync_interval_hours=_env_int("SYNC_INTERVAL_HOURS", 1),
        )
