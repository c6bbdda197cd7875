"""Base critic implementing the Template Method pattern.

All providers share the same algorithm:
    critique(prompt) → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

The answer is returned as raw text. Turning it into a structured review is
the extractor's job, not the provider's.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from prverdict_core.prompt import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096


class CritiqueSourceError(RuntimeError):
    """The critique source failed on every attempt."""


class BaseCritic(ABC):
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, model: str | None = None):
        self.model = model or self.MODEL

    def critique(self, prompt: str) -> str:
        """Send one rendered prompt and return the model's text answer."""
        return self._call_with_retry(SYSTEM_PROMPT, prompt)

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        Raises CritiqueSourceError, chained to the last error, when every
        attempt fails.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt) or ""
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise CritiqueSourceError(
                        f"{self.__class__.__name__} failed after {self.MAX_RETRIES} attempts: {e}"
                    ) from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise CritiqueSourceError(f"{self.__class__.__name__} was configured with no attempts")
