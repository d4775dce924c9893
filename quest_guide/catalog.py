"""Quest catalog — read-only tracks of quests, one per language.

The catalog is a single JSON document:

    {
      "python": [ {Quest}, {Quest}, ... ],
      "nodejs": [ ... ]
    }

Track order is quest order. The catalog is loaded once and never written, so
any number of sessions may share it.
"""

from __future__ import annotations

import json
from pathlib import Path

from quest_guide.config import DEFAULT_CATALOG
from quest_guide.models import Quest


class QuestCatalog:
    def __init__(self, tracks: dict[str, list[Quest]]) -> None:
        self._tracks = {lang: tuple(quests) for lang, quests in tracks.items()}

    @classmethod
    def load(cls, path: Path = DEFAULT_CATALOG) -> QuestCatalog:
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Quest catalog {path} must be a JSON object keyed by language")
        return cls({lang: [Quest.model_validate(q) for q in quests] for lang, quests in data.items()})

    def languages(self) -> list[str]:
        return list(self._tracks)

    def get_track(self, language: str) -> list[Quest]:
        return list(self._tracks.get(language, ()))

    def get_quest(self, quest_id: str) -> Quest | None:
        for quests in self._tracks.values():
            for quest in quests:
                if quest.id == quest_id:
                    return quest
        return None
