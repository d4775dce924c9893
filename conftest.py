import pytest

from quest_guide.models import Quest, QuestValidation


def make_quest(quest_id: str = "python-auth", xp: int = 200, validation: bool = True) -> Quest:
    return Quest(
        id=quest_id,
        title="Authentication Token",
        objective="Generate authentication token for secure API access",
        difficulty="Medium",
        xp_reward=xp,
        language="Python",
        code_snippet="print('hello')",
        expected_output='{"access_token": "abc"}',
        validation=QuestValidation(
            endpoint="https://sandbox.example.com/auth/token",
            method="POST",
            headers={"Content-Type": "application/json"},
            body={"merchant_id": "m-1"},
        ) if validation else None,
    )


@pytest.fixture
def quest() -> Quest:
    return make_quest()


@pytest.fixture
def plain_quest() -> Quest:
    """A quest without a static validation request."""
    return make_quest("python-setup", xp=100, validation=False)


@pytest.fixture
def quest_factory():
    return make_quest
