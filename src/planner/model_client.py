"""Gemini access through pydantic-ai."""

import logging

import httpx
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.settings import ModelSettings
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from config import Settings
from planner.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Sei un pianificatore di viaggi. Rispondi sempre e solo con il JSON richiesto."
)


class GeminiClient:
    """Sends one prompt to the configured Gemini model and returns its text."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _model(self):
        if not self.settings.is_model_configured:
            raise ConfigurationError(
                "Gemini API key not configured", "GEMINI_API_KEY is not set"
            )
        provider = GoogleProvider(api_key=self.settings.gemini_api_key)
        return GoogleModel(self.settings.model_name, provider=provider)

    def _agent(self) -> Agent:
        return Agent(
            model=self._model(),
            system_prompt=SYSTEM_PROMPT,
            output_type=str,
            model_settings=ModelSettings(
                temperature=self.settings.model_temperature,
                max_tokens=self.settings.model_max_tokens,
            ),
        )

    async def generate(self, prompt: str) -> str:
        """
        Run the prompt and return the raw text of the first candidate.

        Raises:
            ConfigurationError: No API key configured
            UpstreamError: The call failed or produced no text
        """
        agent = self._agent()
        logger.info(f"Calling {self.settings.model_name} (prompt: {len(prompt)} chars)")

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ModelHTTPError),
                wait=wait_random_exponential(min=1, max=30),
                stop=stop_after_attempt(max(1, self.settings.model_max_attempts)),
                before_sleep=before_sleep_log(logger, logging.DEBUG),
                reraise=True,
            ):
                with attempt:
                    result = await agent.run(prompt)
        except ModelHTTPError as e:
            raise UpstreamError(
                "Gemini API error", f"{e.status_code} {e.model_name}: {e.body}"
            ) from e
        except (AgentRunError, httpx.HTTPError) as e:
            raise UpstreamError("Gemini API error", str(e)) from e

        text = result.output
        if not text or not text.strip():
            raise UpstreamError("Gemini API error", "No candidates in model response")

        logger.debug(f"Model response: {text[:200]}")
        return text
