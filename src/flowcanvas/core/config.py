# src/flowcanvas/core/config.py
"""
Configuration schema and loading for FlowCanvas.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from flowcanvas.contracts.compile import CompileOptions
from flowcanvas.contracts.enums import EngineMode
from flowcanvas.contracts.graph import StageResources

# Memory strings accepted by the engine, e.g. "4GB", "512 MB", "2.5G"
_MEMORY_PATTERN = re.compile(r"^\d+(\.\d+)?\s*(GB|MB|KB|G|M|K|B)$", re.IGNORECASE)

_MEMORY_UNITS_GB = {
    "gb": 1.0,
    "g": 1.0,
    "mb": 1 / 1024,
    "m": 1 / 1024,
    "kb": 1 / (1024 * 1024),
    "k": 1 / (1024 * 1024),
    "b": 1 / (1024 * 1024 * 1024),
}


def memory_to_gb(value: str) -> float:
    """Convert a validated memory string to gigabytes.

    Raises:
        ValueError: If the string is not ``<number><unit>``
    """
    match = re.match(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]+)\s*$", value)
    if match is None or match.group(2).lower() not in _MEMORY_UNITS_GB:
        raise ValueError(f"Invalid memory format: {value!r}")
    return float(match.group(1)) * _MEMORY_UNITS_GB[match.group(2).lower()]


class ResourceDefaults(BaseModel):
    """Resource requests applied to stages that declare none.

    Example YAML:
        compile:
          resources:
            cpus: 2
            memory: 4.GB
            container: biocontainers/fastqc:v0.11.9_cv8
    """

    model_config = {"frozen": True}

    cpus: int = Field(default=1, gt=0, description="CPUs per task")
    memory: str = Field(default="2.GB", description="Memory per task")
    time_limit: str = Field(default="1.h", description="Wall-clock limit per task")
    container: str = Field(default="ubuntu:22.04", description="Container image per task")

    def to_resources(self) -> StageResources:
        return StageResources(
            cpus=self.cpus,
            memory=self.memory,
            time_limit=self.time_limit,
            container=self.container,
        )


class CompileSettings(BaseModel):
    """Compile-time parameters for script generation."""

    model_config = {"frozen": True}

    run_name: str = Field(default="workflow", min_length=1, description="Human-readable run name")
    output_dir: str = Field(default="results", description="Directory results are published to")
    naming_pattern: str = Field(
        default="{workflow_name}_{timestamp}_{process_name}",
        description="Output file naming pattern",
    )
    input_dir: str = Field(default="./inputs", description="Directory source files are read from")
    resources: ResourceDefaults = Field(default_factory=ResourceDefaults)

    def to_options(self, now: datetime) -> CompileOptions:
        """Freeze these settings plus a clock reading into CompileOptions."""
        return CompileOptions(
            run_name=self.run_name,
            output_dir=self.output_dir,
            naming_pattern=self.naming_pattern,
            input_dir=self.input_dir,
            timestamp=now.strftime("%Y%m%dT%H%M%S"),
            date=now.strftime("%Y-%m-%d"),
            default_resources=self.resources.to_resources(),
        )


class EngineSettings(BaseModel):
    """How the Nextflow engine is launched.

    Example YAML:
        engine:
          mode: container
          use_docker: true
          max_cpus: 8
          max_memory: 6GB
    """

    model_config = {"frozen": True}

    mode: EngineMode = Field(default=EngineMode.LOCAL, description="Run the engine locally or in a container")
    use_docker: bool = Field(default=False, description="Run processes in their own containers")
    engine_version: str = Field(default="25.04.4", description="Engine container image tag")
    executable: str = Field(default="nextflow", description="Engine binary for local mode")
    max_cpus: int = Field(default=4, ge=1, le=64)
    max_memory: str = Field(default="4GB")
    memory_cap_gb: float = Field(default=5.0, gt=0, description="Hard cap on max_memory")
    timeout_minutes: int = Field(default=0, ge=0, description="0 means the 10-minute default")
    cancel_grace_seconds: float = Field(default=5.0, ge=0, description="SIGTERM to SIGKILL delay")

    @field_validator("max_memory")
    @classmethod
    def validate_memory_format(cls, v: str) -> str:
        if not _MEMORY_PATTERN.match(v.strip()):
            raise ValueError(f"max_memory must look like '4GB' or '512MB', got {v!r}")
        return v.strip()

    @property
    def timeout_seconds(self) -> float:
        return (self.timeout_minutes or 10) * 60.0

    @property
    def container_image(self) -> str:
        return f"nextflow/nextflow:{self.engine_version}"


class TrackerSettings(BaseModel):
    """Cool-down windows before a finished run's status is cleared."""

    model_config = {"frozen": True}

    completion_display_seconds: float = Field(default=10.0, ge=0)
    cancel_display_seconds: float = Field(default=1.0, ge=0)


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    model_config = {"frozen": True, "populate_by_name": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = Field(default=False, alias="json", description="Render JSON lines")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class FlowCanvasSettings(BaseModel):
    """Top-level FlowCanvas configuration.

    Every section is optional; an empty settings file yields all defaults.
    """

    model_config = {"frozen": True}

    compile: CompileSettings = Field(default_factory=CompileSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def default_settings() -> FlowCanvasSettings:
    """Settings with every default applied."""
    return FlowCanvasSettings()


def load_settings(config_path: Path) -> FlowCanvasSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (FLOWCANVAS_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: FLOWCANVAS_ENGINE__MAX_CPUS for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="FLOWCANVAS",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys at every level
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _lower_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return FlowCanvasSettings(**raw_config)


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value

