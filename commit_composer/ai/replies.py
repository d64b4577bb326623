"""
Structured reply models for the generation collaborator.

Replies arrive as free text that should contain a JSON object, often
wrapped in a markdown code fence. decode_reply strips the fence and
validates the object against a pydantic model so callers never work
with an unchecked dict.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ReplyParseError

_FENCE_START_RE = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\n?")
_FENCE_END_RE = re.compile(r"\n?```\s*$")

ReplyT = TypeVar("ReplyT", bound=BaseModel)


class DraftReply(BaseModel):
    id: str
    message: str
    files: List[str]
    reasoning: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_numeric_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class AnalysisReply(BaseModel):
    """
    Grouping proposal returned for a compose request.
    """

    drafts: List[DraftReply]
    overall_reasoning: Optional[str] = None


class PatchReply(BaseModel):
    """
    Cleanup patch returned for a deslop request.

    An empty patch means no cleanup was needed.
    """

    patch: str = ""
    summary: str = Field(default="")


def strip_code_fences(text: str) -> str:
    """
    Remove a single surrounding markdown code fence, if present.
    """

    text = text.strip()
    text = _FENCE_START_RE.sub("", text, count=1)
    text = _FENCE_END_RE.sub("", text, count=1)
    return text.strip()


def decode_reply(text: str, model: Type[ReplyT]) -> ReplyT:
    """
    Decode reply text into the given model.

    Raises ReplyParseError when the text is not JSON or when the JSON
    does not match the model.
    """

    cleaned = strip_code_fences(text)
    try:
        raw = json.loads(cleaned)
    except ValueError as exc:
        raise ReplyParseError(f"failed to parse AI response: {exc}") from exc

    if not isinstance(raw, dict):
        raise ReplyParseError("failed to parse AI response: expected a JSON object")

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ReplyParseError(f"failed to parse AI response: invalid structure: {exc}") from exc
