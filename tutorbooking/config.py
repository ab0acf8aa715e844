"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ConfigError
from .domain.models import BusinessHoursPolicy, OpeningHours

WEEKDAY_KEYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


class OpeningHoursConfig(BaseModel):
    """Opening hours of one weekday."""
    open: int
    close: int

    @field_validator("open")
    @classmethod
    def validate_open(cls, v: int) -> int:
        """Validate opening hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("close")
    @classmethod
    def validate_close(cls, v: int) -> int:
        """Validate closing hour is between 1 and 24."""
        if not 1 <= v <= 24:
            raise ValueError(f"Hour must be between 1 and 24, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "OpeningHoursConfig":
        """Ensure the day opens before it closes."""
        if self.close <= self.open:
            raise ValueError("close must be later than open")
        return self

    def to_domain(self) -> OpeningHours:
        return OpeningHours(open_hour=self.open, close_hour=self.close)


def _default_business_hours() -> Dict[str, Optional[OpeningHoursConfig]]:
    weekday = {"open": 15, "close": 19}
    return {
        "monday": OpeningHoursConfig(**weekday),
        "tuesday": OpeningHoursConfig(**weekday),
        "wednesday": OpeningHoursConfig(**weekday),
        "thursday": OpeningHoursConfig(**weekday),
        "friday": OpeningHoursConfig(**weekday),
        "saturday": OpeningHoursConfig(open=10, close=15),
        "sunday": None,
    }


class BackendConfig(BaseModel):
    """Connection settings of the hosted backend."""
    url: str
    api_key: str = ""  # Optional: falls back to the keyring
    timeout_seconds: float = 10

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Backend url must start with http:// or https://, got {value}")
        return value.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    slot_minutes: int = 60
    business_hours: Dict[str, Optional[OpeningHoursConfig]] = Field(
        default_factory=_default_business_hours
    )
    backend: Optional[BackendConfig] = None
    mock_data: Optional[Path] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: int) -> int:
        """Ensure slot length is positive."""
        if value <= 0:
            raise ValueError("slot_minutes must be greater than zero")
        return value

    @field_validator("business_hours")
    @classmethod
    def validate_business_hours(
        cls, value: Dict[str, Optional[OpeningHoursConfig]]
    ) -> Dict[str, Optional[OpeningHoursConfig]]:
        """Normalise weekday names and reject unknown ones."""
        normalized: Dict[str, Optional[OpeningHoursConfig]] = {}
        for name, hours in value.items():
            key = name.strip().lower()
            if key not in WEEKDAY_KEYS:
                raise ValueError(
                    f"Unknown weekday '{name}', expected one of: {', '.join(WEEKDAY_KEYS)}"
                )
            if key in normalized:
                raise ValueError(f"Duplicate weekday detected: {name}")
            normalized[key] = hours
        return normalized

    @model_validator(mode="after")
    def validate_policy(self) -> "AppConfig":
        """Ensure the opening hours can be split into whole slots."""
        self.to_policy()
        return self

    def to_policy(self) -> BusinessHoursPolicy:
        """Build the business-hours policy; weekdays without hours are closed."""
        hours = {
            WEEKDAY_KEYS[name]: opening.to_domain()
            for name, opening in self.business_hours.items()
            if opening is not None
        }
        return BusinessHoursPolicy(
            hours=hours,
            timezone=self.timezone,
            slot_minutes=self.slot_minutes,
        )

    def resolve_api_key(self, credentials) -> str:
        """
        Return the backend API key from the config file or the keyring.

        Raises:
            ConfigError: If no backend is configured or no key can be found
        """
        if self.backend is None:
            raise ConfigError("No backend configured. Add a 'backend' section or use --mock.")

        if self.backend.api_key:
            return self.backend.api_key

        api_key = credentials.get_api_key(self.backend.url)
        if not api_key:
            raise ConfigError(
                f"No API key for {self.backend.url}. "
                f"Store one with 'tutorbooking set-key' or set backend.api_key."
            )
        return api_key

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
