from __future__ import annotations

import logging
from typing import Any

from creative_engine.errors import NotFound, ValidationError
from creative_engine.models import STAGES, Project
from creative_engine.storage import PROJECT_INDEX, DocumentStore, new_id, now_ms

logger = logging.getLogger(__name__)


class ProjectIndex:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def list_projects(self) -> list[Project]:
        return [Project.from_dict(p) for p in self.store.get(None, PROJECT_INDEX) or []]

    def find(self, project_id: str) -> Project | None:
        return next((p for p in self.list_projects() if p.id == project_id), None)

    def get(self, project_id: str) -> Project:
        proj = self.find(project_id)
        if proj is None:
            raise NotFound("Project not found")
        return proj

    def create(self, name: str, brand_context: dict[str, Any] | None = None) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name required")

        ts = now_ms()
        proj = Project(id=new_id(), name=name, brand_context=brand_context or {}, created_at=ts, updated_at=ts)
        with self.store.lock(None):
            projects = self.store.get(None, PROJECT_INDEX) or []
            projects.append(proj.to_dict())
            self.store.put(None, PROJECT_INDEX, projects)

        with self.store.lock(proj.id):
            for stage in STAGES:
                self.store.put(proj.id, stage, [])
            self.store.put(proj.id, "feedback", [])
            self.store.put(proj.id, "patterns", {"approved": [], "rejected": [], "rules": []})

        logger.info("project created id=%s name=%s", proj.id, proj.name)
        return proj

    def touch(self, project_id: str) -> None:
        with self.store.lock(None):
            projects = self.store.get(None, PROJECT_INDEX) or []
            for p in projects:
                if p["id"] == project_id:
                    p["updatedAt"] = now_ms()
                    self.store.put(None, PROJECT_INDEX, projects)
                    return
