"""Configuration settings for vocabquest."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
CATALOG_DIR = Path(os.getenv("CATALOG_DIR", str(DATA_DIR / "catalog")))

# Session types and their default word targets
DEFAULT_TARGET_WORDS = {
    "streak-challenge": 10,
    "boss-battle": 25,
    "precision-mode": 15,
    "quick-dash": 8,
    "deep-dive": 20,
    "fill-in-the-blank": 15,
}
FALLBACK_TARGET_WORDS = 15


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        CATALOG_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    catalog_dir: Path = CATALOG_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabquest.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class StorageSettings:
    """Key-value storage settings."""
    progress_key: str = os.getenv("PROGRESS_STORAGE_KEY", "word_progress")
    max_value_bytes: int = int(os.getenv("STORAGE_MAX_VALUE_BYTES", str(5 * 1024 * 1024)))


def get_default_target_words() -> dict[str, int]:
    """Get default target word counts per session type."""
    return dict(DEFAULT_TARGET_WORDS)


@dataclass
class ChallengeSettings:
    """Challenge orchestration settings."""
    default_target_words: dict[str, int] = field(default_factory=get_default_target_words)
    fallback_target_words: int = FALLBACK_TARGET_WORDS
    default_time_limit: int = int(os.getenv("DEFAULT_TIME_LIMIT", "5"))  # minutes
    default_difficulty: int = int(os.getenv("DEFAULT_DIFFICULTY", "3"))
    unavailable_error_threshold: int = int(os.getenv("UNAVAILABLE_ERROR_THRESHOLD", "10"))
    boss_battle_lives: int = int(os.getenv("BOSS_BATTLE_LIVES", "3"))
    recent_words_window: int = int(os.getenv("RECENT_WORDS_WINDOW", "8"))
    options_count: int = int(os.getenv("OPTIONS_COUNT", "4"))


@dataclass
class MigrationSettings:
    """Word id migration settings."""
    auto_migrate_on_session_start: bool = (
        os.getenv("AUTO_MIGRATE_ON_SESSION_START", "true").lower() == "true"
    )


@dataclass
class MonitoringSettings:
    """Prometheus monitoring settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_challenge_settings() -> ChallengeSettings:
    """Get challenge settings."""
    return ChallengeSettings()


def get_migration_settings() -> MigrationSettings:
    """Get migration settings."""
    return MigrationSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    storage: StorageSettings = field(default_factory=get_storage_settings)
    challenge: ChallengeSettings = field(default_factory=get_challenge_settings)
    migration: MigrationSettings = field(default_factory=get_migration_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.storage.max_value_bytes < 1:
            raise ValueError("STORAGE_MAX_VALUE_BYTES must be positive")

        if not self.storage.progress_key:
            raise ValueError("PROGRESS_STORAGE_KEY cannot be empty")

        if self.challenge.default_time_limit < 1:
            raise ValueError("DEFAULT_TIME_LIMIT must be positive")

        if self.challenge.unavailable_error_threshold < 1:
            raise ValueError("UNAVAILABLE_ERROR_THRESHOLD must be positive")

        if self.challenge.boss_battle_lives < 1:
            raise ValueError("BOSS_BATTLE_LIVES must be positive")

        if self.challenge.options_count < 2:
            raise ValueError("OPTIONS_COUNT must be at least 2")

        if any(target < 1 for target in self.challenge.default_target_words.values()):
            raise ValueError("Default target words must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
