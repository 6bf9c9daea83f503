from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STAGES = ("strategies", "concepts", "scripts", "storyboards")
STATUSES = ("pending", "approved", "rejected", "revision")
ACTIONS = ("approved", "rejected", "revision", "commented")

# Upstream stage each stage is generated from.
PARENT_STAGE = {"concepts": "strategies", "scripts": "concepts", "storyboards": "scripts"}


def action_for_status(status: str) -> str:
    if status in ("approved", "rejected", "revision"):
        return status
    return "commented"


@dataclass
class Project:
    id: str
    name: str
    brand_context: dict[str, Any]
    created_at: int
    updated_at: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        return cls(
            id=data["id"],
            name=data["name"],
            brand_context=data.get("brandContext") or {},
            created_at=data["createdAt"],
            updated_at=data.get("updatedAt", data["createdAt"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brandContext": self.brand_context,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class FeedbackEntry:
    id: str
    item_id: str
    item_title: str
    stage: str
    action: str  # approved|rejected|revision|commented
    timestamp: int
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedbackEntry:
        return cls(
            id=data["id"],
            item_id=data["itemId"],
            item_title=data.get("itemTitle") or "",
            stage=data.get("stage") or "",
            action=data["action"],
            timestamp=data["timestamp"],
            comment=data.get("comment"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "itemId": self.item_id,
            "itemTitle": self.item_title,
            "stage": self.stage,
            "action": self.action,
            "timestamp": self.timestamp,
        }
        if self.comment is not None:
            out["comment"] = self.comment
        return out


@dataclass(frozen=True)
class DecisionPattern:
    title: str
    stage: str
    comment: str | None
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "stage": self.stage, "comment": self.comment, "timestamp": self.timestamp}


@dataclass(frozen=True)
class LearnedRule:
    source_title: str
    rule: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source_title, "rule": self.rule, "timestamp": self.timestamp}


@dataclass
class PatternSummary:
    approved: list[DecisionPattern] = field(default_factory=list)
    rejected: list[DecisionPattern] = field(default_factory=list)
    rules: list[LearnedRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PatternSummary:
        data = data or {}
        return cls(
            approved=[_pattern_from_dict(p) for p in data.get("approved", [])],
            rejected=[_pattern_from_dict(p) for p in data.get("rejected", [])],
            rules=[
                LearnedRule(source_title=r.get("from") or "", rule=r["rule"], timestamp=r["timestamp"])
                for r in data.get("rules", [])
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": [p.to_dict() for p in self.approved],
            "rejected": [p.to_dict() for p in self.rejected],
            "rules": [r.to_dict() for r in self.rules],
        }


def _pattern_from_dict(data: dict[str, Any]) -> DecisionPattern:
    return DecisionPattern(
        title=data.get("title") or "",
        stage=data.get("stage") or "",
        comment=data.get("comment"),
        timestamp=data["timestamp"],
    )


@dataclass(frozen=True)
class Contradiction:
    id: str
    type: str  # direct|thematic
    entry1: FeedbackEntry
    entry2: FeedbackEntry
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "entry1": self.entry1.to_dict(),
            "entry2": self.entry2.to_dict(),
            "description": self.description,
        }
