"""Language model clients used by the execution engine."""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, AsyncIterator, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent
from pydantic_ai.models import infer_model
from pydantic_ai.settings import ModelSettings

from .constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, MAX_TEMPERATURE
from .contracts import AdvancedOptions, SamplingMode
from .errors import (
    InvalidResponseError,
    LanguageModelError,
    ModelExecutionError,
    ModelUnavailableError,
)

if TYPE_CHECKING:
    from .config import StepchainConfig

logger = logging.getLogger(__name__)


class GenerationOptions(BaseModel):
    """Sampling parameters passed along with a prompt."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=MAX_TEMPERATURE)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    sampling_mode: SamplingMode = SamplingMode.RANDOM

    @classmethod
    def from_advanced(cls, options: AdvancedOptions) -> "GenerationOptions":
        return cls(
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            sampling_mode=options.sampling_mode,
        )

    def to_model_settings(self) -> ModelSettings:
        temperature = 0.0 if self.sampling_mode is SamplingMode.GREEDY else self.temperature
        return ModelSettings(temperature=temperature, max_tokens=self.max_tokens)


class LanguageModelClient(abc.ABC):
    """Interface the engine uses to talk to a language model."""

    @abc.abstractmethod
    async def is_available(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> str:
        """Return the complete response to ``prompt``."""
        raise NotImplementedError

    @abc.abstractmethod
    def stream(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AsyncIterator[str]:
        """Yield growing snapshots of the response.

        Every snapshot is the full text produced so far, not a delta. The
        iterator is finite and cannot be restarted.
        """
        raise NotImplementedError


class PydanticAIClient(LanguageModelClient):
    """Client backed by a ``pydantic_ai.Agent`` producing plain text."""

    def __init__(self, agent: Agent) -> None:
        self._agent = agent

    @property
    def agent(self) -> Agent:
        return self._agent

    async def is_available(self) -> bool:
        model = self._agent.model
        if model is None:
            return False
        try:
            infer_model(model)
        except Exception as e:
            logger.warning(f"Language model {model!r} is not usable: {e}")
            return False
        return True

    async def _check(self, prompt: str) -> None:
        if not await self.is_available():
            raise ModelUnavailableError()
        if not prompt.strip():
            raise InvalidResponseError()

    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> str:
        await self._check(prompt)
        settings = options.to_model_settings() if options else None
        try:
            result = await self._agent.run(prompt, model_settings=settings)
        except LanguageModelError:
            raise
        except Exception as e:
            raise ModelExecutionError(str(e)) from e
        return str(result.output)

    async def stream(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AsyncIterator[str]:
        await self._check(prompt)
        settings = options.to_model_settings() if options else None
        try:
            async with self._agent.run_stream(prompt, model_settings=settings) as result:
                async for snapshot in result.stream_text():
                    yield snapshot
        except LanguageModelError:
            raise
        except Exception as e:
            raise ModelExecutionError(str(e)) from e


def build_client(config: "StepchainConfig") -> PydanticAIClient:
    """Create the default client for the configured model name."""
    model_name = config.model.name
    if model_name == "test":
        from pydantic_ai.models.test import TestModel

        model = TestModel(custom_output_text=config.model.test_output)
        return PydanticAIClient(Agent(model, output_type=str))

    logger.debug(f"Using language model {model_name}")
    agent = Agent(
        model_name,
        output_type=str,
        instructions=config.model.instructions,
        defer_model_check=True,
    )
    return PydanticAIClient(agent)
