"""
Crowd Whisper Configuration
===========================

This module handles configuration loading for the density engine.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CROWD_WHISPER_ZONES_PATH      -> zones.definition_path
    CROWD_WHISPER_WINDOW_HORIZON  -> engine.window_horizon_seconds
    CROWD_WHISPER_SWEEP_INTERVAL  -> engine.sweep_interval_seconds
    CROWD_WHISPER_QUEUE_SIZE      -> engine.ingest_queue_size
    CROWD_WHISPER_ALERT_COOLDOWN  -> alerts.cooldown_seconds
    CROWD_WHISPER_SIM_DEVICES     -> simulation.device_count
    CROWD_WHISPER_SIM_INTERVAL    -> simulation.update_interval_seconds
    CROWD_WHISPER_SIM_SEED        -> simulation.seed
    CROWD_WHISPER_PORT            -> server.port
    CROWD_WHISPER_LOG_LEVEL       -> logging.level
    PORT                          -> server.port (container platforms)

Example:
    from crowd_whisper.config import settings

    print(settings.engine.window_horizon_seconds)
    print(settings.alerts.critical_threshold)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="crowd-whisper", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class ZonesConfig(BaseModel):
    """Zone store configuration."""

    definition_path: str = Field(
        default="./data/zones/festival_grounds.json",
        description="Path to zone definition JSON file",
    )


class EngineConfig(BaseModel):
    """Windowing and trend configuration."""

    window_horizon_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Readings older than this are evicted by the sweep",
    )
    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Period of the window sweep task",
    )
    trend_history_size: int = Field(
        default=10,
        ge=4,
        description="Occupancy values kept per zone for trend detection",
    )
    trend_threshold: float = Field(
        default=5.0,
        ge=0,
        description="Mean difference (percentage points) for a non-stable trend",
    )
    ingest_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum queued readings (drop-oldest on overflow)",
    )
    subscriber_queue_size: int = Field(
        default=256,
        ge=1,
        description="Maximum queued events per output subscriber",
    )


class AlertsConfig(BaseModel):
    """Alert threshold configuration."""

    high_threshold: float = Field(default=80.0, ge=0, description="Severity 3 threshold (%)")
    critical_threshold: float = Field(default=90.0, ge=0, description="Severity 5 threshold (%)")
    cooldown_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Per zone/severity suppression window (0 = disabled)",
    )

    @model_validator(mode="after")
    def check_order(self) -> "AlertsConfig":
        if self.high_threshold > self.critical_threshold:
            raise ValueError("high_threshold must not exceed critical_threshold")
        return self


class SimulationSettings(BaseModel):
    """Crowd simulator configuration."""

    device_count: int = Field(default=100, ge=0, description="Devices created on start")
    update_interval_seconds: float = Field(default=1.0, gt=0, description="Tick period")
    movement_speed: float = Field(default=1.5, ge=0, description="Random walk speed factor")
    step_degrees: float = Field(
        default=0.0001,
        gt=0,
        description="Random walk step in degrees at speed 1.0",
    )
    emergency_fraction: float = Field(
        default=0.5,
        gt=0,
        le=1.0,
        description="Share of devices in a zone that flee during an emergency",
    )
    emergency_speed_multiplier: float = Field(
        default=5.0,
        ge=1.0,
        description="Speed factor applied to fleeing devices",
    )
    emergency_duration_ticks: int = Field(
        default=10,
        ge=1,
        description="Ticks a device flees before resuming random walk",
    )
    seed: Optional[int] = Field(default=None, description="Random seed (None = random)")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for crowd-whisper.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    zones: ZonesConfig = Field(default_factory=ZonesConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Zones
    if env_zones := os.environ.get("CROWD_WHISPER_ZONES_PATH"):
        config_data.setdefault("zones", {})["definition_path"] = env_zones

    # Engine
    if env_horizon := os.environ.get("CROWD_WHISPER_WINDOW_HORIZON"):
        config_data.setdefault("engine", {})["window_horizon_seconds"] = float(env_horizon)
    if env_sweep := os.environ.get("CROWD_WHISPER_SWEEP_INTERVAL"):
        config_data.setdefault("engine", {})["sweep_interval_seconds"] = float(env_sweep)
    if env_queue := os.environ.get("CROWD_WHISPER_QUEUE_SIZE"):
        config_data.setdefault("engine", {})["ingest_queue_size"] = int(env_queue)

    # Alerts
    if env_cooldown := os.environ.get("CROWD_WHISPER_ALERT_COOLDOWN"):
        config_data.setdefault("alerts", {})["cooldown_seconds"] = float(env_cooldown)

    # Simulation
    if env_devices := os.environ.get("CROWD_WHISPER_SIM_DEVICES"):
        config_data.setdefault("simulation", {})["device_count"] = int(env_devices)
    if env_interval := os.environ.get("CROWD_WHISPER_SIM_INTERVAL"):
        config_data.setdefault("simulation", {})["update_interval_seconds"] = float(env_interval)
    if env_seed := os.environ.get("CROWD_WHISPER_SIM_SEED"):
        config_data.setdefault("simulation", {})["seed"] = int(env_seed)

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("CROWD_WHISPER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging
    if env_log := os.environ.get("CROWD_WHISPER_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
