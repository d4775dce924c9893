"""Quest progression: XP, badges and the current-quest pointer for one track.

A quest completes in two steps: a validated success (a Success outcome from
the harness, or a passing static validation) followed by an explicit
confirmation from the learner. Success alone never advances the track.

Badge policy:
    first-steps   on entering a track
    code-warrior  when currentQuestIndex reaches 1
    api-master    when the final quest of the track is completed

Badges are never revoked. A completed track stays complete until reset(),
which also forgets the business intent captured before the track was chosen.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pydantic import BaseModel, Field

from quest_guide.errors import ProgressionError
from quest_guide.models import BusinessIntent, Failure, ProgressState, Quest, Success

logger = logging.getLogger(__name__)

FIRST_STEPS = "first-steps"
CODE_WARRIOR = "code-warrior"
API_MASTER = "api-master"

BADGE_NAMES = {
    FIRST_STEPS: "First Steps",
    CODE_WARRIOR: "Code Warrior",
    API_MASTER: "API Master",
}


class CompletionEvent(BaseModel):
    """Emitted once per completed quest."""

    quest_id: str
    xp_awarded: int
    new_badges: list[str] = Field(default_factory=list)
    track_complete: bool = False


class ProgressionController:
    def __init__(self) -> None:
        self._quests: list[Quest] = []
        self.state = ProgressState()
        self._listeners: list[Callable[[CompletionEvent], None]] = []

    def subscribe(self, listener: Callable[[CompletionEvent], None]) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Intent and track selection
    # ------------------------------------------------------------------

    def capture_intent(self, intent: BusinessIntent) -> None:
        """Record the learner's goal; it survives track changes until reset()."""
        self.state.business_intent = intent
        logger.info("Captured intent %r (%s)", intent.goal, ", ".join(intent.payment_methods))

    def enter_track(self, language: str, quests: Sequence[Quest]) -> None:
        """Start a track from scratch; awards first-steps."""
        self._quests = list(quests)
        self.state = ProgressState(language=language, business_intent=self.state.business_intent)
        self._award(FIRST_STEPS)
        logger.info("Entered track %s with %d quests", language, len(self._quests))

    def reset(self) -> None:
        """Clear all progress and the captured intent."""
        self._quests = []
        self.state = ProgressState()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def quests(self) -> list[Quest]:
        return list(self._quests)

    @property
    def current_quest(self) -> Quest | None:
        index = self.state.current_quest_index
        if index >= len(self._quests):
            return None
        return self._quests[index]

    @property
    def track_complete(self) -> bool:
        return self.state.language is not None and self.state.current_quest_index >= len(self._quests)

    @property
    def total_xp(self) -> int:
        return sum(q.xp_reward for q in self._quests)

    @property
    def progress_percent(self) -> float:
        if not self._quests:
            return 0.0
        return 100.0 * self.state.current_quest_index / len(self._quests)

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def observe_outcome(self, quest_id: str, outcome: Success | Failure) -> bool:
        """Record a harness outcome; returns True when it validated the quest."""
        if isinstance(outcome, Success):
            self._mark_validated(quest_id)
            return True
        return False

    def observe_static_validation(self, quest_id: str, passed: bool) -> bool:
        """Record an externally decided pass/fail validation."""
        if passed:
            self._mark_validated(quest_id)
        return passed

    def _mark_validated(self, quest_id: str) -> None:
        if quest_id not in self.state.validated:
            self.state.validated.append(quest_id)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm_completion(self, quest_id: str) -> CompletionEvent | None:
        """Complete ``quest_id``. Returns None if it was already completed."""
        if quest_id in self.state.completed_quests:
            return None
        quest = self.current_quest
        if quest is None or quest.id != quest_id:
            raise ProgressionError(f"Quest {quest_id} is not the current quest")
        if quest_id not in self.state.validated:
            raise ProgressionError(f"Quest {quest_id} has not been validated yet")

        state = self.state
        state.completed_quests.append(quest_id)
        state.xp_earned += quest.xp_reward
        state.current_quest_index += 1

        new_badges: list[str] = []
        if state.current_quest_index == 1 and self._award(CODE_WARRIOR):
            new_badges.append(CODE_WARRIOR)
        if state.current_quest_index == len(self._quests) and self._award(API_MASTER):
            new_badges.append(API_MASTER)

        event = CompletionEvent(
            quest_id=quest_id,
            xp_awarded=quest.xp_reward,
            new_badges=new_badges,
            track_complete=self.track_complete,
        )
        logger.info("Completed quest %s (+%d XP, badges=%s)", quest_id, quest.xp_reward, new_badges)
        for listener in self._listeners:
            listener(event)
        return event

    def _award(self, badge: str) -> bool:
        if badge in self.state.badges:
            return False
        self.state.badges.append(badge)
        return True
