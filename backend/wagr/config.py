"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wagr.currency import DEFAULT_CURRENCY, Currency

logger = logging.getLogger(__name__)


class FeesConfig(BaseModel):
    """Platform fee rates, as fractions of the pool."""

    wager_platform_fee_percentage: float = Field(default=0.05, ge=0, lt=1)
    quiz_platform_fee_percentage: float = Field(default=0.10, ge=0, lt=1)


class RateLimitRule(BaseModel):
    """Requests allowed per fixed window."""

    limit: int = Field(gt=0)
    window: int = Field(gt=0, description="Window length in seconds")


class RateLimitsConfig(BaseModel):
    """Per-endpoint-family request limits."""

    enabled: bool = True
    api_requests: RateLimitRule = RateLimitRule(limit=100, window=60)


class ServerConfig(BaseModel):
    """HTTP server parameters."""

    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class WagersConfig(BaseModel):
    """Wager defaults shown before a user picks an amount."""

    default_currency: Currency = DEFAULT_CURRENCY
    default_entry_amount: float = 500.0


class Settings(BaseSettings):
    """Main configuration class."""

    environment: str = "development"

    # Paths
    data_dir: Path = Path("data")

    # Empty means rate limits are counted in process memory
    database_url: str = ""

    logfire_token: str = ""

    # Nested configuration sections
    fees: FeesConfig = Field(default_factory=FeesConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    wagers: WagersConfig = Field(default_factory=WagersConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m wagr init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["fees", "rate_limits", "server", "wagers"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
