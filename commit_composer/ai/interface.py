"""
Abstract interface for the generation collaborator.

This module defines the protocol that concrete clients must implement.
Keeping this separate from any specific server makes it easy to plug
in different backends, or a fake one in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

from ..config import ModelSelection


class GenerationClient(ABC):
    """
    Abstract interface for one-shot generation requests.
    """

    @abstractmethod
    def complete(self, prompt: str, model: ModelSelection, title: str) -> str:
        """
        Send a single prompt and return the usable reply text.

        Implementations must use a fresh conversation for every call and
        release it before returning, whether or not the call succeeded.
        They raise GenerationAuthError for credential problems and
        GenerationError for every other failure, including an empty reply.
        """


def extract_text(parts: Iterable[Mapping[str, Any]]) -> str:
    """
    Extract the reply text from a list of typed content parts.

    Text parts win; models that only emit reasoning parts fall back to
    those. All other part types are ignored.
    """

    parts = [part for part in parts if isinstance(part, Mapping)]

    text = "".join(str(part.get("text") or "") for part in parts if part.get("type") == "text")
    if text.strip():
        return text.strip()

    reasoning = "".join(
        str(part.get("text") or part.get("reasoning") or "")
        for part in parts
        if part.get("type") == "reasoning"
    )
    return reasoning.strip()
