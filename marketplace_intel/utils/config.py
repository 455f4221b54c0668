"""Configuration management for the marketplace intelligence engine."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite:///data/db/marketplace.db"
    echo: bool = False
    chunk_size: int = 200


class RankingConfig(BaseModel):
    """Ranking scorer configuration."""

    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "sales": 0.40,
            "conversion": 0.20,
            "rating": 0.15,
            "seller_sla": 0.15,
            "return_rate": 0.05,
            "risk_penalty": 0.05,
        }
    )
    window_days: int = 30
    trending_threshold: int = 15
    drop_threshold: int = -20
    oversell_penalty: int = 10


class InventoryConfig(BaseModel):
    """Inventory forecaster configuration."""

    recent_weight: float = 0.6
    buffer_days: int = 45
    stockout_alert_days: float = 7.0
    high_demand_growth: float = 50.0
    high_demand_min_sales: int = 5
    no_sales_horizon: float = 999.0


class FinancingConfig(BaseModel):
    """Financing eligibility configuration."""

    window_days: int = 90
    sales_ceiling: float = 5_000_000
    min_eligibility_score: int = 40
    min_sales: float = 100_000
    max_return_rate: float = 15.0
    freeze_risk_score: float = 70.0
    default_risk_score: float = 50.0
    advance_ratio: float = 0.3
    min_offer_amount: float = 50_000
    repayment_percentage: float = 15.0
    fee_rate: float = 0.08
    cycle_days: int = 30
    max_missed_cycles: int = 3


class ScoringConfig(BaseModel):
    """Scoring configuration."""

    ranking: RankingConfig = Field(default_factory=RankingConfig)
    inventory: InventoryConfig = Field(default_factory=InventoryConfig)
    financing: FinancingConfig = Field(default_factory=FinancingConfig)


class NotificationsConfig(BaseModel):
    """Notification dedup configuration."""

    dedup_window_hours: int = 24


class ScheduleConfig(BaseModel):
    """Scheduling configuration."""

    rankings_hours: int = 6
    inventory_hours: int = 1
    financing_hour: int = 2
    financing_minute: int = 0
    max_instances_per_job: int = 1
    misfire_grace_time_seconds: int = 300


class APIConfig(BaseModel):
    """API configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = "data/logs/engine.log"
    console_format: str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    file_format: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {process} | {name}:{function}:{line} - {message}"
    rotation: str = "10 MB"
    retention: str = "30 days"
    compression: Optional[str] = "zip"


class Config(BaseModel):
    """Main configuration model."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Settings(BaseSettings):
    """Environment-based settings."""

    # Database
    database_url: str = ""

    # Logging
    log_level: str = ""
    log_file: str = ""

    # API
    api_host: str = ""
    api_port: int = 0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class ConfigManager:
    """Configuration manager for loading and merging config sources."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to YAML configuration file
        """
        load_dotenv()

        if config_path is None:
            config_path = Path(__file__).parent.parent.parent / "config" / "config.yaml"

        self.config_path = config_path
        self.yaml_config = self._load_yaml()

        self.env_settings = Settings()

        self.config = self._merge_config()

    def _load_yaml(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path, "r") as f:
            return yaml.safe_load(f) or {}

    def _merge_config(self) -> Config:
        """Merge YAML config with environment variables."""
        merged = self.yaml_config.copy()

        # Environment wins over YAML where set
        if self.env_settings.database_url:
            merged.setdefault("database", {})["url"] = self.env_settings.database_url

        if self.env_settings.log_level:
            merged.setdefault("logging", {})["level"] = self.env_settings.log_level

        if self.env_settings.log_file:
            merged.setdefault("logging", {})["file"] = self.env_settings.log_file

        if self.env_settings.api_host:
            merged.setdefault("api", {})["host"] = self.env_settings.api_host

        if self.env_settings.api_port:
            merged.setdefault("api", {})["port"] = self.env_settings.api_port

        return Config(**merged)


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> Config:
    """Get global configuration instance."""
    return get_config_manager().config


def get_settings() -> Settings:
    """Get environment settings."""
    return get_config_manager().env_settings


def get_config_manager() -> ConfigManager:
    """Get configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
