"""Assistant client — connection to the external conversational service.

The session talks to the assistant through the protocol:

    async def create_session(self) -> str: ...
    async def start(self, session_id: str, quest: Quest, intent: BusinessIntent | None = None) -> str: ...
    async def reply(self, session_id: str, text: str) -> str: ...

Two implementations are provided:

    HttpAssistant      — real HTTP client for the assistant service.
    ScriptedAssistant  — answers from the quest record with no network calls.
                         Used when no assistant URL is configured, and in tests.

Replies are opaque text; the session runs them through the directive
extractor.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from uuid import uuid4

import httpx

from quest_guide.errors import AssistantError
from quest_guide.models import PAYMENT_METHODS, BusinessIntent, Quest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every assistant implementation must match these signatures
# ---------------------------------------------------------------------------

class Assistant(Protocol):
    async def create_session(self) -> str: ...

    async def start(self, session_id: str, quest: Quest, intent: BusinessIntent | None = None) -> str: ...

    async def reply(self, session_id: str, text: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpAssistant: connects to the real service
# ---------------------------------------------------------------------------

class HttpAssistant:
    """Async HTTP client for the assistant service.

    Wire format:
      POST {base}/sessions                 → {"id": "..."}
      POST {base}/sessions/{id}/start      {"quest": {...}, "intent"?: {...}} → {"response": "..."}
      POST {base}/sessions/{id}/messages   {"message": "..."} → {"response": "..."}

    Args:
        base_url: Base URL of the service, e.g. "http://localhost:8000".
        api_key:  Bearer token, or empty string if not required.
        timeout:  HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 120.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug("assistant call url=%s", url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise AssistantError(f"Cannot connect to assistant at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise AssistantError(f"Assistant returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise AssistantError(f"Assistant timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise AssistantError(f"Assistant request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise AssistantError("Assistant returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise AssistantError("Unexpected response format from assistant")
        return data

    async def create_session(self) -> str:
        data = await self._post("/sessions", {})
        session_id = data.get("id")
        if not session_id:
            raise AssistantError("Assistant did not return a session id")
        return str(session_id)

    async def start(self, session_id: str, quest: Quest, intent: BusinessIntent | None = None) -> str:
        body: dict[str, Any] = {"quest": quest.model_dump(by_alias=True)}
        if intent is not None:
            body["intent"] = intent.model_dump(by_alias=True)
        data = await self._post(f"/sessions/{session_id}/start", body)
        return self._response_text(data)

    async def reply(self, session_id: str, text: str) -> str:
        data = await self._post(f"/sessions/{session_id}/messages", {"message": text})
        return self._response_text(data)

    def _response_text(self, data: dict[str, Any]) -> str:
        text = data.get("response")
        if not isinstance(text, str):
            raise AssistantError("Unexpected response format from assistant")
        logger.debug("assistant response len=%d", len(text))
        return text


# ---------------------------------------------------------------------------
# ScriptedAssistant: offline guide built from the quest record
# ---------------------------------------------------------------------------

class ScriptedAssistant:
    """Keyword-driven guide that needs no network.

    Asking for the code returns the quest's snippet and, when the quest has a
    static validation block, a ready directive the learner can run.
    """

    def __init__(self) -> None:
        self._quests: dict[str, Quest] = {}

    async def create_session(self) -> str:
        session_id = uuid4().hex
        logger.debug("ScriptedAssistant session=%s", session_id)
        return session_id

    async def start(self, session_id: str, quest: Quest, intent: BusinessIntent | None = None) -> str:
        self._quests[session_id] = quest
        greeting = f'Hello! I\'m your guide for the "{quest.title}" quest.'
        if intent is not None:
            methods = ", ".join(PAYMENT_METHODS[m] for m in intent.payment_methods)
            greeting += f' You want to "{intent.goal}" with {methods}, so we\'ll keep that in mind.'
        return greeting + " Ready to get started?"

    async def reply(self, session_id: str, text: str) -> str:
        quest = self._quests.get(session_id)
        if quest is None:
            raise AssistantError(f"Unknown session {session_id}")
        lowered = text.lower()

        if "succeeded" in lowered:
            return "Great work, that request succeeded! Press Continue when you're ready for the next quest."
        if "failed" in lowered:
            return "That request failed. Check the URL, headers and body, then run it again."
        if "code" in lowered:
            return self._code_reply(quest)
        if "objective" in lowered:
            return f'The main objective is: "{quest.objective}". Let me know when you\'re ready for the code.'
        if "output" in lowered:
            return f"The expected output looks like this:\n\n{quest.expected_output}"
        return "I can help you with the code, the objective, or the expected output. What would you like to know?"

    def _code_reply(self, quest: Quest) -> str:
        text = (
            f"Here is the code for this quest in {quest.language}:\n\n"
            f"```\n{quest.code_snippet}\n```"
        )
        if quest.validation is None:
            return text
        directive = {
            "ready": True,
            "url": quest.validation.endpoint,
            "method": quest.validation.method,
            "headers": quest.validation.headers,
            "payload": quest.validation.body,
            "bearerToken": None,
        }
        return (
            f"{text}\n\nWhen you're ready, run this request to validate the quest:\n\n"
            f"```json\n{json.dumps(directive, indent=2)}\n```"
        )
