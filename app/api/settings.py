"""Application settings loaded from the environment."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-sourced configuration for backup and monitoring runs."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Service
    IMAGE_TAG: str = "local"
    DEBUG: bool = False
    LOG_DIR: str = "/app/logs"
    LOG_LEVEL: str = "INFO"
    LOG_FILENAME: str = "backup-lifecycle.log"
    PROJECT_NAME: str = "app-stack"
    ADMIN_API_KEY: Optional[str] = None

    # Sources
    DATABASE_URL: Optional[str] = None
    BACKUP_SOURCE_DIR: str = "."
    BACKUP_CONFIG_FILES: List[str] = Field(
        default_factory=lambda: [
            "pyproject.toml",
            "package.json",
            "docker-compose.yml",
            ".env.example",
            ".github/workflows/backup.yml",
        ]
    )
    BACKUP_CODE_EXCLUDES: List[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "dist", "build", "backups"]
    )

    # Local storage and reports
    BACKUP_DIR: str = "./backups"
    STATUS_REPORT_FILENAME: str = "status_report.json"
    RUN_REPORT_FILENAME: str = "backup_report.json"

    # Retention and alert thresholds
    BACKUP_MAX_BACKUPS: int = 10
    BACKUP_STALE_HOURS: float = 24
    BACKUP_MAX_AGE_DAYS: float = 7
    BACKUP_MIN_COUNT: int = 3

    # Execution
    BACKUP_COMMAND_TIMEOUT_SECONDS: float = 3600
    BACKUP_PUBLISH_CONCURRENCY: int = 4

    # Remote storage
    BACKUP_REMOTE_TYPE: str = "s3"
    BACKUP_REMOTE_PREFIX: str = "backups"
    BACKUP_S3_BUCKET: Optional[str] = None
    BACKUP_S3_ENDPOINT_URL: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    SFTP_HOST: Optional[str] = None
    SFTP_PORT: int = 22
    SFTP_USERNAME: Optional[str] = None
    SFTP_PASSWORD: Optional[str] = None
    SFTP_PRIVATE_KEY: Optional[str] = None
    SFTP_PRIVATE_KEY_PASSPHRASE: Optional[str] = None
    SFTP_BASE_PATH: str = "/backups"

    # Notifications
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    NOTIFY_MIN_SEVERITY: str = "high"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process settings."""

    return settings
