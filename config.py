from typing import List, Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DB_URL: str = "sqlite:///./darlingx.db"
    STORAGE_BACKEND: str = "sql"  # "sql" or "github"

    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12

    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_AUTH_MAX_AGE_SECONDS: int = 86400

    # GitHub JSON document
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_OWNER: str = "darlingx1x"
    GITHUB_REPO: str = "bd"
    GITHUB_BRANCH: str = "main"
    GITHUB_DB_PATH: str = "db.json"
    GITHUB_CACHE_TTL_SECONDS: int = 300
    GITHUB_WRITE_RETRIES: int = 3
    GITHUB_TIMEOUT_SECONDS: float = 10.0

    # Site behaviour
    SITE_NAME: str = "DarlingX"
    REQUIRE_APPROVAL: bool = False
    ALLOW_REGISTRATION: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "https://darlingx.com"]

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_MAX_FILE_SIZE: int = 10485760  # 10MB in bytes
    LOG_BACKUP_COUNT: int = 5
    LOG_COLORS: str = "true"

    # Environment
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"

settings = Settings()
