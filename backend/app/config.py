from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # listing / export
    PAGE_SIZE: int = 10
    EXPORT_BATCH_SIZE: int = 100
    # leftover export files older than this (seconds) are removed by the next export
    EXPORT_TEMP_MAX_AGE: int = 3600

    # order numbers: <prefix><YYYYMMDD><seq>
    ORDER_NO_PREFIX: str = "INV"
    ORDER_NO_SEQ_WIDTH: int = 3
    # opt-in: serialize allocate+insert with a host-local file lock
    ORDER_NO_LOCK: bool = False
    ORDER_NO_LOCK_TIMEOUT: float = 10.0

    # False = commit each step of update/delete separately (stores without transactions)
    ATOMIC_WRITES: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
