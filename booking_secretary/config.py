"""Configuration handling for the booking engine."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import yaml  # type: ignore
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# Load environment variables from .env file if it exists
load_dotenv()


@dataclass
class OAuth2Config:
    """OAuth2 configuration for the Google Calendar API."""

    client_id: str
    client_secret: str
    refresh_token: Optional[str] = None
    access_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["OAuth2Config"]:
        """Create OAuth2 configuration from dictionary."""
        data = data or {}

        # OAuth2 credentials can be specified in environment variables
        client_id = data.get("client_id") or os.environ.get("GOOGLE_CLIENT_ID")
        client_secret = data.get("client_secret") or os.environ.get(
            "GOOGLE_CLIENT_SECRET"
        )
        refresh_token = data.get("refresh_token") or os.environ.get(
            "GOOGLE_REFRESH_TOKEN"
        )

        if not client_id or not client_secret:
            return None

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=refresh_token,
            access_token=data.get("access_token"),
        )


SEND_UPDATES_CHOICES = ("all", "externalOnly", "none")


@dataclass
class CalendarConfig:
    """Google Calendar integration settings."""

    enabled: bool = True
    send_updates: str = "all"
    max_query_days: int = 60

    def __post_init__(self):
        if self.send_updates not in SEND_UPDATES_CHOICES:
            raise ValueError(
                f"Invalid send_updates '{self.send_updates}'. Must be 'all', 'externalOnly', or 'none'."
            )
        if self.max_query_days < 1:
            raise ValueError("max_query_days must be at least 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarConfig":
        """Create Calendar configuration from dictionary."""
        return cls(
            enabled=data.get("enabled", True),
            send_updates=data.get("send_updates", "all"),
            max_query_days=int(data.get("max_query_days", 60)),
        )


@dataclass
class SlotConfig:
    """Candidate slot generation policy."""

    step_minutes: int = 15
    horizon_years: int = 1
    max_duration_minutes: int = 720

    def __post_init__(self):
        """Validate slot configuration."""
        if self.step_minutes <= 0 or 60 % self.step_minutes != 0:
            raise ValueError(
                f"step_minutes must be a positive divisor of 60 (got {self.step_minutes})"
            )
        if self.horizon_years < 1:
            raise ValueError("horizon_years must be at least 1")
        if self.max_duration_minutes < 1:
            raise ValueError("max_duration_minutes must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlotConfig":
        return cls(
            step_minutes=int(data.get("step_minutes", 15)),
            horizon_years=int(data.get("horizon_years", 1)),
            max_duration_minutes=int(data.get("max_duration_minutes", 720)),
        )


@dataclass
class OwnerConfig:
    """A calendar owner guests can book with."""

    owner_id: str
    email: str
    full_name: Optional[str] = None
    calendar_id: str = "primary"

    def __post_init__(self):
        self.email = self.email.lower()

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnerConfig":
        return cls(
            owner_id=str(data["owner_id"]),
            email=data["email"],
            full_name=data.get("full_name"),
            calendar_id=data.get("calendar_id", "primary"),
        )


@dataclass
class PostgresConfig:
    """PostgreSQL database configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "booking"
    user: str = "booking"
    password: str = ""
    ssl_mode: str = "prefer"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostgresConfig":
        return cls(
            host=data.get("host") or os.environ.get("POSTGRES_HOST", "localhost"),
            port=int(data.get("port") or os.environ.get("POSTGRES_PORT", "5432")),
            database=data.get("database")
            or os.environ.get("POSTGRES_DATABASE", "booking"),
            user=data.get("user") or os.environ.get("POSTGRES_USER", "booking"),
            password=data.get("password") or os.environ.get("POSTGRES_PASSWORD", ""),
            ssl_mode=data.get("ssl_mode", "prefer"),
        )


@dataclass
class DatabaseConfig:
    """Database configuration."""

    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    pool_min_size: int = 1
    pool_max_size: int = 10
    connect_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        backend = str(data.get("backend", "postgres")).lower().strip()
        if backend not in ("postgres", "postgresql"):
            raise ValueError(f"Invalid database backend '{backend}'. Must be 'postgres'.")

        return cls(
            postgres=PostgresConfig.from_dict(data.get("postgres", {})),
            pool_min_size=int(data.get("pool_min_size", 1)),
            pool_max_size=int(data.get("pool_max_size", 10)),
            connect_timeout=float(data.get("connect_timeout", 10.0)),
        )


@dataclass
class ServerConfig:
    """Booking engine configuration."""

    default_timezone: str = "UTC"
    google: Optional[OAuth2Config] = None
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    slots: SlotConfig = field(default_factory=SlotConfig)
    owners: Dict[str, OwnerConfig] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def __post_init__(self):
        """Validate server configuration."""
        # Validate timezone
        try:
            ZoneInfo(self.default_timezone)
        except Exception as e:
            raise ValueError(
                f"Invalid timezone '{self.default_timezone}': {e}. "
                "Must be a valid IANA timezone (e.g., 'America/Los_Angeles')"
            )

    def get_owner(self, owner_id: str) -> Optional[OwnerConfig]:
        return self.owners.get(owner_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerConfig":
        """Create configuration from dictionary."""
        owners_data: List[Dict[str, Any]] = data.get("owners") or []
        owners: Dict[str, OwnerConfig] = {}
        for owner_data in owners_data:
            owner = OwnerConfig.from_dict(owner_data)
            if owner.owner_id in owners:
                raise ValueError(f"Duplicate owner_id '{owner.owner_id}' in owners")
            owners[owner.owner_id] = owner

        if not owners:
            logger.warning(
                "No owners configured - bookings will be rejected until one is added"
            )

        return cls(
            default_timezone=data.get("default_timezone", "UTC"),
            google=OAuth2Config.from_dict(data.get("google", {})),
            calendar=CalendarConfig.from_dict(data.get("calendar", {})),
            slots=SlotConfig.from_dict(data.get("slots", {})),
            owners=owners,
            database=DatabaseConfig.from_dict(data.get("database", {})),
        )


def load_config(config_path: Optional[str] = None) -> ServerConfig:
    """Load configuration from file or environment variables.

    Args:
        config_path: Path to configuration file

    Returns:
        Server configuration

    Raises:
        ValueError: If configuration is invalid
    """
    # Default locations to check for config file
    # Container paths first (Docker), then local dev paths
    default_locations = [
        Path("/app/config/config.yaml"),
        Path("/app/config/config.yml"),
        Path("config/config.yaml"),
        Path("config/config.yml"),
        Path("config.yaml"),
        Path("config.yml"),
        Path("~/.config/booking-secretary/config.yaml"),
        Path("/etc/booking-secretary/config.yaml"),
    ]

    config_data: Dict[str, Any] = {}

    if config_path:
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {config_path}")
        except FileNotFoundError:
            logger.warning(f"Configuration file not found: {config_path}")
    else:
        for path in default_locations:
            expanded_path = path.expanduser()
            if expanded_path.exists():
                with open(expanded_path, "r") as f:
                    config_data = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {expanded_path}")
                break

    # If no file was found, fall back to environment variables
    if not config_data:
        logger.info("No configuration file found, using environment variables")
        if not os.environ.get("BOOKING_OWNER_ID"):
            raise ValueError(
                "No configuration file found and BOOKING_OWNER_ID environment variable not set"
            )

        config_data = {
            "default_timezone": os.environ.get("BOOKING_TIMEZONE", "UTC"),
            "owners": [
                {
                    "owner_id": os.environ.get("BOOKING_OWNER_ID"),
                    "email": os.environ.get("BOOKING_OWNER_EMAIL", ""),
                    "full_name": os.environ.get("BOOKING_OWNER_NAME"),
                    "calendar_id": os.environ.get("BOOKING_CALENDAR_ID", "primary"),
                }
            ],
            "slots": {
                "step_minutes": int(os.environ.get("BOOKING_SLOT_STEP_MINUTES", "15")),
            },
            "calendar": {
                "enabled": os.environ.get("BOOKING_CALENDAR_ENABLED", "true").lower()
                == "true",
            },
        }

    # Create config object
    try:
        return ServerConfig.from_dict(config_data)
    except KeyError as e:
        raise ValueError(f"Missing required configuration: {e}")
