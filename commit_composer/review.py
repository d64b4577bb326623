"""
User-facing review of a DraftSet before it is applied.

The review loop is a small state machine. From REVIEWING the user can
edit a commit message, view a draft, regenerate the whole proposal,
apply everything or cancel. APPLYING and CANCELLED end the loop; the
loop itself never touches the repository, so cancelling is always safe.
"""

from __future__ import annotations

import enum
import logging
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO

from .drafts import DraftSet
from .errors import ComposerError

LOG = logging.getLogger(__name__)

APPLY_ALL = "apply_all"
EDIT_MESSAGE = "edit_message"
VIEW_DRAFT = "view_draft"
REGENERATE = "regenerate"
CANCEL = "cancel"

MENU = [
    (APPLY_ALL, "Apply all commits"),
    (EDIT_MESSAGE, "Edit a commit message"),
    (VIEW_DRAFT, "View draft details"),
    (REGENERATE, "Regenerate analysis"),
    (CANCEL, "Cancel"),
]


class ReviewState(enum.Enum):
    REVIEWING = "reviewing"
    EDITING = "editing"
    VIEWING = "viewing"
    REGENERATING = "regenerating"
    APPLYING = "applying"
    CANCELLED = "cancelled"


TERMINAL_STATES = {ReviewState.APPLYING, ReviewState.CANCELLED}


@dataclass
class ReviewOutcome:
    state: ReviewState
    drafts: DraftSet

    @property
    def apply(self) -> bool:
        return self.state is ReviewState.APPLYING


class ReviewLoop:
    """
    Drive the review state machine.

    regenerate is called with no arguments and must return a fresh
    DraftSet built from the same inputs. ask prompts the user and returns
    the raw answer; it may raise EOFError or KeyboardInterrupt, both of
    which cancel the loop.
    """

    def __init__(
        self,
        drafts: DraftSet,
        regenerate: Callable[[], DraftSet],
        ask: Callable[[str], str] = input,
        out: Optional[TextIO] = None,
    ) -> None:
        self.drafts = drafts
        self._regenerate = regenerate
        self._ask = ask
        self._out = out
        self.state = ReviewState.REVIEWING
        self._selected: Optional[int] = None

    # -- transitions -----------------------------------------------------

    def _require(self, *states: ReviewState) -> None:
        if self.state not in states:
            raise RuntimeError(f"invalid transition from state {self.state.value}")

    def _selected_index(self) -> int:
        if self._selected is None:
            raise RuntimeError(f"no draft selected in state {self.state.value}")
        return self._selected

    def select(self, action: str, index: Optional[int] = None) -> ReviewState:
        """
        Handle a menu selection made in the REVIEWING state.

        index is the zero-based draft position for edit and view.
        """

        self._require(ReviewState.REVIEWING)

        if action == APPLY_ALL:
            self.state = ReviewState.APPLYING
        elif action == CANCEL:
            self.state = ReviewState.CANCELLED
        elif action in (EDIT_MESSAGE, VIEW_DRAFT):
            if index is None or not 0 <= index < len(self.drafts):
                raise IndexError(f"no draft at position {(index or 0) + 1}")
            self._selected = index
            self.state = ReviewState.EDITING if action == EDIT_MESSAGE else ReviewState.VIEWING
        elif action == REGENERATE:
            self.state = ReviewState.REGENERATING
            self._run_regenerate()
        else:
            raise ValueError(f"unknown action: {action}")
        return self.state

    def interrupt(self) -> ReviewState:
        """
        External cancel (Ctrl+C, closed stdin). Allowed from any
        non-terminal state.
        """

        if self.state not in TERMINAL_STATES:
            self.state = ReviewState.CANCELLED
        return self.state

    def finish_edit(self, message: Optional[str]) -> ReviewState:
        """
        Complete an edit. A blank or missing message leaves the draft as is.
        """

        self._require(ReviewState.EDITING)
        index = self._selected_index()
        if message and message.strip():
            self.drafts.edit_message(index, message)
            self._print("Commit message updated")
        self._selected = None
        self.state = ReviewState.REVIEWING
        return self.state

    def view_lines(self) -> List[str]:
        self._require(ReviewState.VIEWING)
        return self.drafts.detail_lines(self._selected_index())

    def acknowledge(self) -> ReviewState:
        self._require(ReviewState.VIEWING)
        self._selected = None
        self.state = ReviewState.REVIEWING
        return self.state

    def _run_regenerate(self) -> None:
        try:
            self.drafts = self._regenerate()
        except ComposerError as exc:
            LOG.debug("Regeneration failed", exc_info=True)
            self._print(f"Analysis failed: {exc}", err=True)
        else:
            self.show_drafts()
        self.state = ReviewState.REVIEWING

    # -- interactive driver ----------------------------------------------

    def run(self, interactive: bool = True) -> ReviewOutcome:
        """
        Run the loop until a terminal state is reached.

        Non-interactive runs go straight from REVIEWING to APPLYING.
        """

        if not interactive:
            self.select(APPLY_ALL)
            return ReviewOutcome(self.state, self.drafts)

        try:
            while self.state not in TERMINAL_STATES:
                self._step()
        except (EOFError, KeyboardInterrupt):
            self._print("")
            self.interrupt()

        return ReviewOutcome(self.state, self.drafts)

    def _step(self) -> None:
        action = self._ask_action()
        if action is None:
            return

        if action in (EDIT_MESSAGE, VIEW_DRAFT):
            index = self._ask_draft_index()
            if index is None:
                return
            self.select(action, index)
            if action == EDIT_MESSAGE:
                current = self.drafts[index].message
                message = self._ask(f"New commit message (current: {current!r}, Enter to keep): ")
                self.finish_edit(message)
                self.show_drafts()
            else:
                for line in self.view_lines():
                    self._print(line)
                self.acknowledge()
            return

        self.select(action)

    def _ask_action(self) -> Optional[str]:
        self._print("What would you like to do?")
        for number, (action, label) in enumerate(MENU, start=1):
            if action == APPLY_ALL:
                label = f"Apply all {len(self.drafts)} commits"
            self._print(f"  {number}) {label}")
        answer = self._ask("Choice: ").strip().lower()

        for number, (action, _) in enumerate(MENU, start=1):
            if answer in (str(number), action):
                return action
        if answer in ("q", "quit"):
            return CANCEL
        self._print(f"Unknown choice: {answer!r}", err=True)
        return None

    def _ask_draft_index(self) -> Optional[int]:
        answer = self._ask(f"Which draft? [1-{len(self.drafts)}, Enter to go back]: ").strip()
        if not answer:
            return None
        try:
            index = int(answer) - 1
        except ValueError:
            self._print(f"Not a number: {answer!r}", err=True)
            return None
        if not 0 <= index < len(self.drafts):
            self._print(f"No draft {answer}", err=True)
            return None
        return index

    def show_drafts(self) -> None:
        for line in self.drafts.summary_lines():
            self._print(line)
        if self.drafts.reasoning:
            self._print(f"Strategy: {self.drafts.reasoning}")
        self._print("")

    def _print(self, text: str, err: bool = False) -> None:
        print(text, file=sys.stderr if err else (self._out or sys.stdout))


def review_drafts(
    drafts: DraftSet,
    regenerate: Callable[[], DraftSet],
    interactive: Optional[bool] = None,
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> ReviewOutcome:
    """
    Show the drafts and let the user revise them.

    When interactive is None it is inferred from whether stdin is a TTY.
    """

    if interactive is None:
        interactive = sys.stdin.isatty()

    loop = ReviewLoop(drafts, regenerate, ask=ask, out=out)
    loop.show_drafts()
    return loop.run(interactive=interactive)
