from __future__ import annotations

import logging
from collections.abc import Sequence

from creative_engine.models import DecisionPattern, FeedbackEntry, LearnedRule, PatternSummary
from creative_engine.storage import DocumentStore

logger = logging.getLogger(__name__)

PATTERNS = "patterns"


def summarize(ledger: Sequence[FeedbackEntry]) -> PatternSummary:
    """Project the full ledger into approved/rejected sets and revision-derived rules."""
    summary = PatternSummary()
    for entry in ledger:
        if entry.action == "approved":
            summary.approved.append(_as_pattern(entry))
        elif entry.action == "rejected":
            summary.rejected.append(_as_pattern(entry))
        elif entry.action == "revision" and (entry.comment or "").strip():
            summary.rules.append(
                LearnedRule(source_title=entry.item_title, rule=entry.comment, timestamp=entry.timestamp)
            )
    return summary


def _as_pattern(entry: FeedbackEntry) -> DecisionPattern:
    return DecisionPattern(title=entry.item_title, stage=entry.stage, comment=entry.comment, timestamp=entry.timestamp)


class PatternLearner:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get(self, project_id: str) -> PatternSummary:
        return PatternSummary.from_dict(self.store.get(project_id, PATTERNS))

    def recompute(self, project_id: str, ledger: Sequence[FeedbackEntry]) -> PatternSummary:
        # Always a full rebuild; the stored summary is replaced, never patched.
        summary = summarize(ledger)
        self.store.put(project_id, PATTERNS, summary.to_dict())
        logger.debug(
            "patterns recomputed project=%s approved=%d rejected=%d rules=%d",
            project_id,
            len(summary.approved),
            len(summary.rejected),
            len(summary.rules),
        )
        return summary
