"""FastAPI API endpoints under /api.

Endpoint groups: health, tracks + progress, and the open quest (messages,
request runs, validation, confirmation). The app holds a single Tutor in
app.state; there is no multi-user support.
"""

from fastapi import APIRouter

from .quest import router as quest_router
from .tracks import router as tracks_router

router = APIRouter()
router.include_router(tracks_router)
router.include_router(quest_router)
