from __future__ import annotations

import logging
from typing import Any

from creative_engine.errors import ValidationError
from creative_engine.memory.patterns import PatternLearner
from creative_engine.models import ACTIONS, FeedbackEntry
from creative_engine.storage import DocumentStore, new_id, now_ms

logger = logging.getLogger(__name__)

FEEDBACK = "feedback"


class FeedbackLedger:
    """
    Append-only record of every human decision on a project.

    Entries come back from `list` in the order they were appended; later
    entries are the more recent intent. Every append rebuilds the project's
    pattern summary before returning.
    """

    def __init__(self, store: DocumentStore, learner: PatternLearner | None = None) -> None:
        self.store = store
        self.learner = learner or PatternLearner(store)

    def list(self, project_id: str) -> list[FeedbackEntry]:
        return [FeedbackEntry.from_dict(e) for e in self.store.get(project_id, FEEDBACK) or []]

    def append(self, project_id: str, entry: dict[str, Any]) -> FeedbackEntry:
        action = entry.get("action")
        if action not in ACTIONS:
            raise ValidationError(f"Invalid feedback action: {action!r}")
        if not entry.get("itemId"):
            raise ValidationError("itemId required")

        comment = entry.get("comment")
        stored = FeedbackEntry(
            id=entry.get("id") or new_id(),
            item_id=entry["itemId"],
            item_title=entry.get("itemTitle") or "",
            stage=entry.get("stage") or "",
            action=action,
            timestamp=entry.get("timestamp") or now_ms(),
            comment=comment if comment else None,
        )

        with self.store.lock(project_id):
            raw = self.store.get(project_id, FEEDBACK) or []
            raw.append(stored.to_dict())
            self.store.put(project_id, FEEDBACK, raw)
            self.learner.recompute(project_id, [FeedbackEntry.from_dict(e) for e in raw])

        logger.info(
            "feedback recorded project=%s item=%s stage=%s action=%s",
            project_id,
            stored.item_id,
            stored.stage,
            stored.action,
        )
        return stored
