from __future__ import annotations

import logging
from typing import Any

from creative_engine.errors import NotFound, ValidationError
from creative_engine.memory.ledger import FeedbackLedger
from creative_engine.models import PARENT_STAGE, STAGES, STATUSES, action_for_status
from creative_engine.pipeline.projects import ProjectIndex
from creative_engine.storage import DocumentStore, new_id, now_ms

logger = logging.getLogger(__name__)


def check_stage(stage: str) -> str:
    if stage not in STAGES:
        raise ValidationError(f"Unknown stage: {stage!r}")
    return stage


def new_comment(text: str, author: str = "user") -> dict[str, Any]:
    return {"id": new_id(), "text": text, "timestamp": now_ms(), "author": author}


def new_item(title: str, description: str, parent_id: str | None = None, **fields: Any) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": new_id(),
        "title": title,
        "description": description,
        "status": "pending",
        "comments": [],
        "parentId": parent_id,
        "createdAt": now_ms(),
    }
    item.update(fields)
    return item


class ItemStore:
    """
    Pipeline items per project and stage.

    Status changes and comments also land in the feedback ledger, one entry
    per call.
    """

    def __init__(self, store: DocumentStore, projects: ProjectIndex, ledger: FeedbackLedger) -> None:
        self.store = store
        self.projects = projects
        self.ledger = ledger

    def list_items(self, project_id: str, stage: str) -> list[dict[str, Any]]:
        return self.store.get(project_id, check_stage(stage)) or []

    def get_item(self, project_id: str, stage: str, item_id: str) -> dict[str, Any]:
        item = next((i for i in self.list_items(project_id, stage) if i.get("id") == item_id), None)
        if item is None:
            raise NotFound("Item not found")
        return item

    def _write(self, project_id: str, stage: str, items: list[dict[str, Any]]) -> None:
        self.store.put(project_id, stage, items)
        self.projects.touch(project_id)

    def add_items(self, project_id: str, stage: str, new_items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        check_stage(stage)
        with self.store.lock(project_id):
            existing = self.list_items(project_id, stage)
            existing_ids = {i.get("id") for i in existing}
            to_add = [i for i in new_items if i.get("id") not in existing_ids]
            updated = existing + to_add
            self._write(project_id, stage, updated)
        logger.info("items added project=%s stage=%s n=%d", project_id, stage, len(to_add))
        return updated

    def update_item(self, project_id: str, stage: str, item_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        check_stage(stage)
        with self.store.lock(project_id):
            items = self.list_items(project_id, stage)
            idx = next((n for n, i in enumerate(items) if i.get("id") == item_id), None)
            if idx is None:
                raise NotFound("Item not found")
            items[idx] = {**items[idx], **updates, "updatedAt": now_ms()}
            self._write(project_id, stage, items)
            return items[idx]

    def set_status(
        self,
        project_id: str,
        stage: str,
        item_id: str,
        status: str,
        comment: str | None = None,
    ) -> dict[str, Any]:
        if status not in STATUSES:
            raise ValidationError("Invalid status")
        check_stage(stage)

        with self.store.lock(project_id):
            item = self.get_item(project_id, stage, item_id)
            updates: dict[str, Any] = {"status": status}
            if comment:
                updates["comments"] = [*(item.get("comments") or []), new_comment(comment)]
            updated = self.update_item(project_id, stage, item_id, updates)
            self.ledger.append(
                project_id,
                {
                    "itemId": item_id,
                    "itemTitle": item.get("title"),
                    "stage": stage,
                    "action": action_for_status(status),
                    "comment": comment or None,
                },
            )
        return updated

    def add_comment(self, project_id: str, stage: str, item_id: str, comment: str) -> dict[str, Any]:
        if not (comment or "").strip():
            raise ValidationError("Comment required")
        check_stage(stage)

        with self.store.lock(project_id):
            item = self.get_item(project_id, stage, item_id)
            updated = self.update_item(
                project_id,
                stage,
                item_id,
                {"comments": [*(item.get("comments") or []), new_comment(comment)]},
            )
            self.ledger.append(
                project_id,
                {
                    "itemId": item_id,
                    "itemTitle": item.get("title"),
                    "stage": stage,
                    "action": "commented",
                    "comment": comment,
                },
            )
        return updated

    def pending_parents(
        self,
        project_id: str,
        stage: str,
        exclude_ids: set[str] | frozenset[str] = frozenset(),
    ) -> list[dict[str, Any]]:
        """Approved upstream items of `stage` that have no downstream item yet."""
        parent_stage = PARENT_STAGE.get(check_stage(stage))
        if parent_stage is None:
            raise ValidationError(f"Stage {stage!r} has no upstream stage")
        done = {i.get("parentId") for i in self.list_items(project_id, stage)}
        return [
            p
            for p in self.list_items(project_id, parent_stage)
            if p.get("status") == "approved" and p["id"] not in done and p["id"] not in exclude_ids
        ]
