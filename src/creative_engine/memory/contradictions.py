from __future__ import annotations

from collections.abc import Sequence

from creative_engine.memory.ledger import FeedbackLedger
from creative_engine.models import Contradiction, FeedbackEntry
from creative_engine.storage import new_id

# Literal, case-insensitive substring triggers. The table is the definition of
# which themes exist; keep matching plain substring.
THEME_KEYWORDS: dict[str, tuple[str, ...]] = {
    "shorter": ("too long", "shorter", "trim", "cut down"),
    "longer": ("too short", "longer", "expand", "more detail"),
    "lighter": ("too dark", "lighter", "softer", "less edgy"),
    "darker": ("darker", "edgier", "push it", "more aggressive"),
    "grounded": ("too absurd", "too weird", "more realistic", "grounded"),
    "absurd": ("more absurd", "weirder", "push further", "too safe"),
}

OPPOSING_THEMES: tuple[tuple[str, str], ...] = (
    ("shorter", "longer"),
    ("lighter", "darker"),
    ("grounded", "absurd"),
)

DESCRIPTION_SNIPPET = 60


def find_contradictions(ledger: Sequence[FeedbackEntry]) -> list[Contradiction]:
    """Direct contradictions first, grouped by item, then thematic ones in axis order."""
    return _direct(ledger) + _thematic(ledger)


def _direct(ledger: Sequence[FeedbackEntry]) -> list[Contradiction]:
    by_item: dict[str, list[FeedbackEntry]] = {}
    for entry in ledger:
        by_item.setdefault(entry.item_id, []).append(entry)

    out: list[Contradiction] = []
    for entries in by_item.values():
        # Every pair, not just neighbours: approve, comment, comment, reject still conflicts.
        for i, a in enumerate(entries):
            for b in entries[i + 1 :]:
                if {a.action, b.action} != {"approved", "rejected"}:
                    continue
                out.append(
                    Contradiction(
                        id=new_id(),
                        type="direct",
                        entry1=a,
                        entry2=b,
                        description=f'You {a.action} "{a.item_title}" then {b.action} it. Which call do we go with?',
                    )
                )
    return out


def tag_themes(ledger: Sequence[FeedbackEntry]) -> dict[str, list[FeedbackEntry]]:
    themes: dict[str, list[FeedbackEntry]] = {}
    for entry in ledger:
        if not entry.comment:
            continue
        lower = entry.comment.lower()
        for theme, keywords in THEME_KEYWORDS.items():
            if any(kw in lower for kw in keywords):
                themes.setdefault(theme, []).append(entry)
    return themes


def _thematic(ledger: Sequence[FeedbackEntry]) -> list[Contradiction]:
    themes = tag_themes(ledger)
    out: list[Contradiction] = []
    for left, right in OPPOSING_THEMES:
        if not themes.get(left) or not themes.get(right):
            continue
        e1 = themes[left][-1]
        e2 = themes[right][-1]
        c1 = (e1.comment or "")[:DESCRIPTION_SNIPPET]
        c2 = (e2.comment or "")[:DESCRIPTION_SNIPPET]
        out.append(
            Contradiction(
                id=new_id(),
                type="thematic",
                entry1=e1,
                entry2=e2,
                description=f'Mixed signals: "{c1}..." vs "{c2}..." - help me calibrate.',
            )
        )
    return out


def detect(ledger: FeedbackLedger, project_id: str) -> list[Contradiction]:
    return find_contradictions(ledger.list(project_id))
