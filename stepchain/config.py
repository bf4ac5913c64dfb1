from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from .contracts import SamplingMode


class ModelConfig(BaseModel):
    """Language model selection.

    ``name`` is any model string understood by pydantic-ai, e.g.
    ``openai:gpt-4o-mini``. ``test`` selects an offline model that echoes
    ``test_output``.
    """

    name: str = "test"
    instructions: Optional[str] = None
    test_output: Optional[str] = None


class EngineConfig(BaseModel):
    """Defaults applied when a step does not enable its own options."""

    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    sampling_mode: SamplingMode = SamplingMode.RANDOM
    step_timeout: Optional[float] = Field(default=None, gt=0)


class NotificationConfig(BaseModel):
    backend: Literal["none", "console", "inmemory"] = "none"


class StepchainConfig(BaseModel):
    """Top-level configuration model."""

    model: ModelConfig = ModelConfig()
    engine: EngineConfig = EngineConfig()
    notifications: NotificationConfig = NotificationConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> StepchainConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPCHAIN_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STEPCHAIN_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepchainConfig(**data)
    else:
        config = StepchainConfig()

    env_db_url = os.getenv("STEPCHAIN_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
