from fastapi import FastAPI

from quest_guide.catalog import QuestCatalog
from quest_guide.config import Settings, load_settings
from quest_guide.routes import router
from quest_guide.tutor import Tutor


def create_app(settings: Settings | None = None, tutor: Tutor | None = None) -> FastAPI:
    resolved = settings or load_settings()
    if tutor is None:
        tutor = Tutor(resolved, QuestCatalog.load(resolved.catalog_path))

    app = FastAPI(title="Quest Guide")
    app.state.tutor = tutor
    app.include_router(router, prefix="/api")
    return app
