"""Core domain models.

Every component of the request-directive engine operates on these types.
Pydantic is used for validation and serialisation at every data boundary:
the catalog file, directives parsed out of assistant text, and the JSON API.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

Sender = Literal["user", "assistant"]
Difficulty = Literal["Easy", "Medium", "Hard"]
FailureReason = Literal["transport", "status", "malformed_input", "malformed_response"]


def _normalise_method(value: Any) -> str:
    method = str(value).strip().upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"unsupported HTTP method {value!r}")
    return method


# ---------------------------------------------------------------------------
# Directive: a request specification embedded in assistant text
# ---------------------------------------------------------------------------

class Directive(BaseModel):
    """A machine-actionable request extracted from an assistant message.

    Keys follow the wire schema the assistant is prompted with, so
    ``bearerToken`` keeps its camelCase name on the wire.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ready: bool = False
    url: str
    method: str = "GET"
    headers: dict[str, Any] = Field(default_factory=dict)
    payload: Any = None
    bearer_token: str | None = Field(default=None, alias="bearerToken")

    @field_validator("method", mode="before")
    @classmethod
    def _method(cls, value: Any) -> str:
        return _normalise_method(value)

    @field_validator("url")
    @classmethod
    def _url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("url must not be empty")
        return value.strip()


# ---------------------------------------------------------------------------
# Outcome: Success | Failure, tagged on "kind"
# ---------------------------------------------------------------------------

class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    status: int
    body: Any = None


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    status: int | None = None  # None when no response was received
    message: str
    body: Any = None
    reason: FailureReason = "transport"


Outcome = Annotated[Success | Failure, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Message: one entry in a session's append-only log
# ---------------------------------------------------------------------------

class Message(BaseModel):
    """A single turn in a conversation.

    ``sender``, ``content`` and ``directive`` are frozen. ``outcome`` is set by
    the session when the learner runs the directive; ``notes`` collects replay
    notes when a later explicit run replaces it.
    """

    sender: Sender = Field(frozen=True)
    content: str = Field(frozen=True)
    directive: Directive | None = Field(default=None, frozen=True)
    outcome: Outcome | None = None
    notes: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Quest catalog records (read-only input)
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestValidation(_CamelModel):
    """Static request used to validate a quest when no directive is produced."""

    endpoint: str
    method: str = "POST"
    headers: dict[str, Any] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)

    @field_validator("method", mode="before")
    @classmethod
    def _method(cls, value: Any) -> str:
        return _normalise_method(value)


class Quest(_CamelModel):
    id: str
    title: str
    objective: str
    description: str = ""
    difficulty: Difficulty
    xp_reward: int = Field(gt=0)
    language: str
    code_snippet: str = ""
    expected_output: str = ""
    validation: QuestValidation | None = None


PAYMENT_METHODS = {
    "card": "Credit/Debit Cards",
    "upi": "UPI Payments",
    "netbanking": "Net Banking",
    "points": "Loyalty Points",
    "wallet": "Digital Wallets",
}

SUGGESTED_GOALS = (
    "Collect one-time payments from customers",
    "Implement refunds and cancellations",
    "Set up recurring subscription billing",
    "Accept payments through mobile apps",
    "Process bulk payout transactions",
    "Integrate payment gateway with e-commerce",
)


class BusinessIntent(_CamelModel):
    """What the learner wants to build, captured before a track is chosen."""

    model_config = ConfigDict(frozen=True)

    goal: str
    payment_methods: list[str] = Field(min_length=1)

    @field_validator("goal")
    @classmethod
    def _goal(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("goal must not be empty")
        return value.strip()

    @field_validator("payment_methods")
    @classmethod
    def _payment_methods(cls, value: list[str]) -> list[str]:
        unknown = [m for m in value if m not in PAYMENT_METHODS]
        if unknown:
            raise ValueError(f"unknown payment methods {unknown}")
        return list(dict.fromkeys(value))


class ProgressState(_CamelModel):
    """Learner progress through the active track."""

    business_intent: BusinessIntent | None = None
    language: str | None = None
    completed_quests: list[str] = Field(default_factory=list)
    xp_earned: int = 0
    badges: list[str] = Field(default_factory=list)
    current_quest_index: int = 0
    validated: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# RequestSpec: editable input to the harness
# ---------------------------------------------------------------------------

def _dump(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, indent=2)


class RequestSpec(BaseModel):
    """One HTTP request as the learner sees it in the request editor.

    Headers and body stay as JSON text until the harness sends the request,
    so hand edits that break the JSON surface as a Failure instead of a
    validation error here.
    """

    url: str
    method: str = "POST"
    headers: str = "{}"
    body: str = ""

    @field_validator("method", mode="before")
    @classmethod
    def _method(cls, value: Any) -> str:
        return _normalise_method(value)

    @classmethod
    def from_directive(cls, directive: Directive) -> RequestSpec:
        headers = dict(directive.headers)
        if directive.bearer_token:
            headers["Authorization"] = f"Bearer {directive.bearer_token}"
        return cls(
            url=directive.url,
            method=directive.method,
            headers=_dump(headers),
            body=_dump(directive.payload),
        )

    @classmethod
    def from_validation(cls, validation: QuestValidation) -> RequestSpec:
        return cls(
            url=validation.endpoint,
            method=validation.method,
            headers=_dump(validation.headers),
            body=_dump(validation.body),
        )

    def with_overrides(self, **fields: str | None) -> RequestSpec:
        """Return a copy with learner edits applied; ``None`` leaves a field alone."""
        updates = {k: v for k, v in fields.items() if v is not None}
        if not updates:
            return self
        return RequestSpec.model_validate({**self.model_dump(), **updates})
