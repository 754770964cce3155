"""Base provider with the shared completion plumbing."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from switchboard.errors import ModelCallError
from switchboard.types.providers import ChatMessage, ModelResponse

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for all provider adapters.

    Concrete sub-classes implement :meth:`_complete`. Model calls are made
    once. Any SDK exception is wrapped in :class:`ModelCallError`.

    Parameters
    ----------
    model:
        The model identifier string (e.g. ``"gpt-4o-mini"``).
    temperature:
        Sampling temperature sent with every request.
    max_tokens:
        Upper bound on generated tokens per turn.
    """

    def __init__(self, model: str, *, temperature: float = 0.0, max_tokens: int = 4096) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model_id(self) -> str:
        """The model identifier being used by this provider instance."""
        return self._model

    async def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        """Run one non-streaming completion.

        Parameters
        ----------
        messages:
            The full conversation, system messages included.
        tools:
            Provider-agnostic function schemas (``name``, ``description``,
            ``parameters``). May be empty.

        Returns
        -------
        ModelResponse | None
            The parsed turn, or *None* when the provider returned no message.

        Raises
        ------
        ModelCallError
            When the request fails for any reason.
        """
        try:
            return await self._complete(messages, tools)
        except ModelCallError:
            raise
        except Exception as exc:
            logger.debug("%s request failed", type(self).__name__, exc_info=True)
            raise ModelCallError(str(exc) or type(exc).__name__) from exc

    @abstractmethod
    async def _complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        ...


def split_system(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system messages (joined by blank lines) from the rest."""
    system = [m.content for m in messages if m.role == "system" and m.content]
    rest = [m for m in messages if m.role != "system"]
    return "\n\n".join(system), rest
