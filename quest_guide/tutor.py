"""Tutor — one learner's workspace.

Wires the catalog, the progression controller, the harness and at most one
open ConversationSession together. Opening a quest closes the previous
session; confirming a completion closes it as well, so no dialogue carries
over from one quest to the next.
"""

from __future__ import annotations

import logging

from quest_guide.assistant import Assistant, HttpAssistant, ScriptedAssistant
from quest_guide.catalog import QuestCatalog
from quest_guide.config import Settings
from quest_guide.errors import SessionLost
from quest_guide.harness import RequestHarness
from quest_guide.models import BusinessIntent, Failure, Message, Quest, Success
from quest_guide.progress import CompletionEvent, ProgressionController
from quest_guide.session import ConversationSession

logger = logging.getLogger(__name__)


def make_assistant(settings: Settings) -> Assistant:
    """HttpAssistant when a service URL is configured, else ScriptedAssistant."""
    if settings.assistant_url:
        return HttpAssistant(
            settings.assistant_url,
            api_key=settings.assistant_api_key,
            timeout=settings.assistant_timeout,
        )
    logger.info("No assistant URL configured, using the scripted guide")
    return ScriptedAssistant()


class Tutor:
    def __init__(
        self,
        settings: Settings,
        catalog: QuestCatalog,
        *,
        assistant: Assistant | None = None,
        harness: RequestHarness | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.progress = ProgressionController()
        self.assistant = assistant or make_assistant(settings)
        self.harness = harness or RequestHarness(timeout=settings.request_timeout)
        self.session: ConversationSession | None = None

    # ------------------------------------------------------------------
    # Intent and track
    # ------------------------------------------------------------------

    def capture_intent(self, goal: str, payment_methods: list[str]) -> BusinessIntent:
        """Record what the learner wants to build; raises ValidationError when blank."""
        intent = BusinessIntent(goal=goal, payment_methods=payment_methods)
        self.progress.capture_intent(intent)
        return intent

    def enter_track(self, language: str) -> None:
        quests = self.catalog.get_track(language)
        if not quests:
            raise LookupError(f"Unknown track {language!r}")
        self.close_quest()
        self.progress.enter_track(language, quests)

    def reset(self) -> None:
        self.close_quest()
        self.progress.reset()

    # ------------------------------------------------------------------
    # Quest session
    # ------------------------------------------------------------------

    def _require_quest(self) -> Quest:
        quest = self.progress.current_quest
        if quest is None:
            raise LookupError("No quest is available; choose a track first")
        return quest

    def require_session(self) -> ConversationSession:
        if self.session is None:
            raise SessionLost("No quest is open; open the quest to reconnect")
        return self.session

    async def open_quest(self) -> Message:
        """Open the current quest in a fresh session and return the greeting."""
        quest = self._require_quest()
        self.close_quest()
        self.session = ConversationSession(
            quest,
            self.assistant,
            self.harness,
            forward_outcomes=self.settings.forward_outcomes,
            intent=self.progress.state.business_intent,
        )
        return await self.session.open()

    def close_quest(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None

    async def send(self, text: str) -> Message:
        return await self.require_session().submit(text)

    async def run(
        self,
        index: int | None = None,
        **overrides: str | None,
    ) -> Success | Failure:
        """Run a directive (or the static request) and report it to progression."""
        session = self.require_session()
        outcome = await session.run_directive(index, **overrides)
        if not session.closed:
            self.progress.observe_outcome(session.quest.id, outcome)
        return outcome

    def validate(self, passed: bool) -> bool:
        """Legacy static validation: an externally decided pass/fail."""
        quest = self._require_quest()
        return self.progress.observe_static_validation(quest.id, passed)

    def confirm(self) -> CompletionEvent | None:
        """Confirm completion of the current quest and close its session."""
        quest = self._require_quest()
        event = self.progress.confirm_completion(quest.id)
        if event is not None:
            self.close_quest()
        return event
