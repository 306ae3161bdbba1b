"""Configuration models using Pydantic for validation."""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator
import os


DEFAULT_CONFIG_PATH = "/usr/local/etc/spdata-exporter.yml"


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = "INFO"
    format: Literal["json", "text"] = "text"


class ProbesConfig(BaseModel):
    """Auxiliary host probes, each enabled individually."""
    cvlabel_count: bool = False
    latest_backup: bool = False
    core_files: bool = False
    ntp: bool = False
    cores_dir: str = "/cores"


class Config(BaseModel):
    """Root configuration model."""
    port: int
    data_types: List[str]
    bind_address: str = "0.0.0.0"
    reset_between_scrapes: bool = True
    fetch_workers: int = Field(default=4, ge=1)
    fetch_timeout_s: Optional[float] = None  # None blocks until the profiler exits
    profiler_command: str = "system_profiler"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    probes: ProbesConfig = Field(default_factory=ProbesConfig)

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate the listen port."""
        if not 0 < v < 65536:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator('data_types')
    @classmethod
    def validate_data_types(cls, v):
        """Validate data type list."""
        if not v:
            raise ValueError("At least one data type must be defined")

        if len(v) != len(set(v)):
            raise ValueError("Data types must be unique")

        return v


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    # Apply environment variable overrides
    if env_port := os.getenv('SPDATA_EXPORTER_PORT'):
        raw_config['port'] = env_port

    if env_log_level := os.getenv('LOG_LEVEL'):
        if 'logging' not in raw_config or raw_config['logging'] is None:
            raw_config['logging'] = {}
        raw_config['logging']['level'] = env_log_level

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
