"""
Configuration loading

Values come from an optional YAML file (one section per process type) and
are overridden by command line options, then validated with pydantic.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, Field, model_validator

from .protocol import DESMAN_PORT

CONFIG_ENV = "DNIDS_CONFIG"

ModelT = TypeVar("ModelT", bound=BaseModel)


class DesmanConfig(BaseModel):
    """Desman (coordinator) settings"""

    watchdogs: int = Field(..., ge=1, description="number of watchdogs to wait for")
    logfile: str = Field(..., description="log file, truncated at startup")
    host: Optional[str] = Field(default=None, description="listen address, auto selected when unset")
    port: int = Field(default=DESMAN_PORT, ge=0, le=65535, description="listen port")
    log_level: str = Field(default="INFO", description="logging level")


class WatchdogConfig(BaseModel):
    """Watchdog (sensor) settings"""

    desman: str = Field(..., description="desman address")
    logfile: str = Field(..., description="log file, truncated at startup")
    interface: Optional[str] = Field(default=None, description="live capture interface")
    pcapfile: Optional[str] = Field(default=None, description="trace file to replay")
    timeslice: float = Field(default=1.0, ge=0.1, description="seconds per report")
    port: int = Field(default=DESMAN_PORT, ge=1, le=65535, description="desman port")
    log_level: str = Field(default="INFO", description="logging level")

    @model_validator(mode="after")
    def _one_capture_source(self) -> "WatchdogConfig":
        if self.interface and self.pcapfile:
            raise ValueError("provide only one of interface or pcapfile, not both")
        if not self.interface and not self.pcapfile:
            raise ValueError("must provide a live interface or a pcapfile")
        return self

    @property
    def replay(self) -> bool:
        """True when packets come from a trace file"""
        return self.pcapfile is not None


def load_config(
    model: Type[ModelT],
    section: str,
    config_path: Optional[str] = None,
    **overrides: Any,
) -> ModelT:
    """
    Build a validated config.

    Priority:
    1. overrides that are not None (command line)
    2. the given section of the YAML file at config_path
    3. the YAML file named by DNIDS_CONFIG, ignored when missing
    4. model defaults
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV)

    data: Dict[str, Any] = {}
    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            data.update(raw.get(section) or {})
        elif explicit:
            raise FileNotFoundError(f"config file not found: {config_path}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    return model(**data)
