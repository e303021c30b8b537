import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(
        default="http://localhost:5173", validation_alias="ALLOWED_ORIGIN"
    )
    RATE_LIMIT_TIMES: int = Field(default=60, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Upstream services
    LOOKUP_API_URL: str = Field(
        default="http://localhost:3000", validation_alias="LOOKUP_API_URL"
    )
    REGISTRATION_API_URL: str = Field(
        default="http://localhost:3000", validation_alias="REGISTRATION_API_URL"
    )
    UPSTREAM_API_TOKEN: str = Field(default="", validation_alias="UPSTREAM_API_TOKEN")
    LOOKUP_TIMEOUT_SECONDS: float = Field(
        default=30.0, validation_alias="LOOKUP_TIMEOUT_SECONDS"
    )
    REGISTRATION_TIMEOUT_SECONDS: float = Field(
        default=10.0, validation_alias="REGISTRATION_TIMEOUT_SECONDS"
    )

    # Job engine
    ITEM_DELAY_SECONDS: float = Field(default=1.0, validation_alias="ITEM_DELAY_SECONDS")
    STALE_THRESHOLD_SECONDS: float = Field(
        default=120.0, validation_alias="STALE_THRESHOLD_SECONDS"
    )
    RECOVERY_INTERVAL_SECONDS: float = Field(
        default=30.0, validation_alias="RECOVERY_INTERVAL_SECONDS"
    )
    MAX_BATCH_ITEMS: int = Field(default=5000, validation_alias="MAX_BATCH_ITEMS")

    # Logging knobs
    LOGGER_NAME: str = "clt-consult"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
