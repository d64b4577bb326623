"""
Proposal synthesis for commit-composer.

The synthesizer sends the change list to the generation collaborator,
decodes its grouping proposal and turns it into a valid DraftSet. The
collaborator is never trusted to cover every file: coverage repair in
build_draft_set always runs.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .ai.interface import GenerationClient
from .ai.prompts import DEFAULT_COMPOSE_GUIDELINES, build_compose_prompt
from .ai.replies import AnalysisReply, decode_reply
from .config import ModelSelection
from .domain import ChangeRecord, DraftCommit
from .drafts import DraftSet, build_draft_set
from .errors import NothingToDoError

LOG = logging.getLogger(__name__)

SESSION_TITLE = "commit-composer-compose"


def synthesize(
    files: Sequence[ChangeRecord],
    client: GenerationClient,
    model: ModelSelection,
    instructions: Optional[str] = None,
    guidelines: str = DEFAULT_COMPOSE_GUIDELINES,
) -> DraftSet:
    """
    Ask the collaborator to group files into draft commits.

    Raises GenerationAuthError / GenerationError from the client, and
    ReplyParseError when the reply is not an object with a drafts list.
    No repository state is touched, so every failure is safe to retry.
    """

    if not files:
        raise NothingToDoError("no changed files to compose")

    prompt = build_compose_prompt(guidelines, files, instructions)
    LOG.info("Requesting grouping for %d files from %s", len(files), model)
    reply_text = client.complete(prompt, model, SESSION_TITLE)

    reply = decode_reply(reply_text, AnalysisReply)
    proposed = [
        DraftCommit(
            id=draft.id,
            message=draft.message,
            files=list(draft.files),
            reasoning=draft.reasoning,
        )
        for draft in reply.drafts
    ]
    return build_draft_set(proposed, files, reasoning=reply.overall_reasoning)
