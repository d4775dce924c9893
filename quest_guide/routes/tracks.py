"""Health, business intent, track selection and progress endpoints."""

from fastapi import APIRouter, Depends
from pydantic import ValidationError

from quest_guide.models import PAYMENT_METHODS, SUGGESTED_GOALS
from quest_guide.progress import BADGE_NAMES
from quest_guide.tutor import Tutor

from .models import IntentBody, get_tutor, http_error

router = APIRouter()


def progress_view(tutor: Tutor) -> dict:
    progress = tutor.progress
    current = progress.current_quest
    return {
        **progress.state.model_dump(by_alias=True),
        "totalXp": progress.total_xp,
        "totalQuests": len(progress.quests),
        "progressPercent": progress.progress_percent,
        "trackComplete": progress.track_complete,
        "badgeNames": [BADGE_NAMES.get(b, b) for b in progress.state.badges],
        "currentQuest": current.model_dump(by_alias=True) if current else None,
    }


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/intent/options")
async def intent_options():
    """Suggested goals and the payment methods a learner can pick from."""
    return {
        "goals": list(SUGGESTED_GOALS),
        "paymentMethods": [{"id": key, "name": name} for key, name in PAYMENT_METHODS.items()],
    }


@router.post("/intent")
async def capture_intent(body: IntentBody, tutor: Tutor = Depends(get_tutor)):
    """Record the learner's goal and payment methods before a track is chosen."""
    try:
        tutor.capture_intent(body.goal, body.payment_methods)
    except ValidationError as e:
        raise http_error(e)
    return progress_view(tutor)


@router.get("/tracks")
async def list_tracks(tutor: Tutor = Depends(get_tutor)):
    """List available language tracks with their quest counts."""
    return [
        {"language": lang, "quests": len(tutor.catalog.get_track(lang))}
        for lang in tutor.catalog.languages()
    ]


@router.post("/tracks/{language}")
async def enter_track(language: str, tutor: Tutor = Depends(get_tutor)):
    """Start a language track from scratch."""
    try:
        tutor.enter_track(language)
    except LookupError as e:
        raise http_error(e)
    return progress_view(tutor)


@router.get("/progress")
async def get_progress(tutor: Tutor = Depends(get_tutor)):
    """XP, badges and the current quest."""
    return progress_view(tutor)


@router.post("/reset")
async def reset(tutor: Tutor = Depends(get_tutor)):
    """Clear all progress and the captured intent."""
    tutor.reset()
    return progress_view(tutor)
