from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from creative_engine.memory.contradictions import detect
from creative_engine.memory.ledger import FeedbackLedger
from creative_engine.memory.patterns import PatternLearner
from creative_engine.models import Contradiction, FeedbackEntry, PatternSummary, Project
from creative_engine.pipeline.items import ItemStore
from creative_engine.pipeline.projects import ProjectIndex


@dataclass(frozen=True)
class Context:
    project: Project | None
    strategies: list[dict[str, Any]]
    concepts: list[dict[str, Any]]
    scripts: list[dict[str, Any]]
    storyboards: list[dict[str, Any]]
    feedback: list[FeedbackEntry]
    patterns: PatternSummary
    contradictions: list[Contradiction]

    @property
    def summary(self) -> dict[str, int]:
        counts = {a: 0 for a in ("approved", "rejected", "revision", "commented")}
        for entry in self.feedback:
            counts[entry.action] = counts.get(entry.action, 0) + 1
        return {
            "totalFeedback": len(self.feedback),
            "approvedCount": counts["approved"],
            "rejectedCount": counts["rejected"],
            "revisionCount": counts["revision"],
            "commentedCount": counts["commented"],
            "activeContradictions": len(self.contradictions),
            "learnedRules": len(self.patterns.rules),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project.to_dict() if self.project else None,
            "strategies": self.strategies,
            "concepts": self.concepts,
            "scripts": self.scripts,
            "storyboards": self.storyboards,
            "feedback": [e.to_dict() for e in self.feedback],
            "patterns": self.patterns.to_dict(),
            "contradictions": [c.to_dict() for c in self.contradictions],
            "summary": self.summary,
        }


class ContextCompiler:
    """Builds the full-memory payload for a generation call. Nothing is cached."""

    def __init__(
        self,
        projects: ProjectIndex,
        items: ItemStore,
        ledger: FeedbackLedger,
        learner: PatternLearner,
    ) -> None:
        self.projects = projects
        self.items = items
        self.ledger = ledger
        self.learner = learner

    def compile(self, project_id: str) -> Context:
        feedback = self.ledger.list(project_id)
        return Context(
            project=self.projects.find(project_id),
            strategies=self.items.list_items(project_id, "strategies"),
            concepts=self.items.list_items(project_id, "concepts"),
            scripts=self.items.list_items(project_id, "scripts"),
            storyboards=self.items.list_items(project_id, "storyboards"),
            feedback=feedback,
            patterns=self.learner.get(project_id),
            contradictions=detect(self.ledger, project_id),
        )
