"""Direct and thematic contradiction detection."""

from __future__ import annotations

from creative_engine.memory.contradictions import find_contradictions, tag_themes
from creative_engine.models import FeedbackEntry


def fb(ts: int, action: str, comment: str | None = None, item: str = "X", title: str = "Hook A") -> FeedbackEntry:
    return FeedbackEntry(
        id=f"fb-{ts}",
        item_id=item,
        item_title=title,
        stage="concepts",
        action=action,
        timestamp=ts,
        comment=comment,
    )


def test_approve_then_reject_is_one_direct_contradiction() -> None:
    found = find_contradictions([fb(1, "approved"), fb(2, "rejected")])

    assert len(found) == 1
    assert found[0].type == "direct"
    assert found[0].description == 'You approved "Hook A" then rejected it. Which call do we go with?'


def test_direct_pairs_are_not_limited_to_neighbours() -> None:
    ledger = [fb(1, "approved"), fb(2, "commented", "hmm"), fb(3, "rejected")]

    found = find_contradictions(ledger)

    assert len(found) == 1
    assert (found[0].entry1.timestamp, found[0].entry2.timestamp) == (1, 3)


def test_every_conflicting_pair_is_reported() -> None:
    ledger = [fb(1, "approved"), fb(2, "rejected"), fb(3, "approved")]

    found = find_contradictions(ledger)

    assert [(c.entry1.timestamp, c.entry2.timestamp) for c in found] == [(1, 2), (2, 3)]


def test_same_action_twice_and_other_items_do_not_conflict() -> None:
    ledger = [
        fb(1, "approved", item="X"),
        fb(2, "approved", item="X"),
        fb(3, "rejected", item="Y"),
        fb(4, "revision", item="X"),
    ]

    assert find_contradictions(ledger) == []


def test_thematic_needs_evidence_on_both_sides() -> None:
    ledger = [fb(1, "commented", "This is too long", item="A"), fb(2, "revision", "Trim the intro", item="B")]

    assert find_contradictions(ledger) == []

    ledger.append(fb(3, "commented", "Expand the middle beat", item="C"))
    found = find_contradictions(ledger)

    assert len(found) == 1
    assert found[0].type == "thematic"


def test_thematic_uses_most_recent_entry_of_each_side() -> None:
    ledger = [
        fb(1, "commented", "way too long", item="A"),
        fb(2, "commented", "needs more detail", item="B"),
        fb(3, "commented", "cut down the ending", item="C"),
    ]

    (found,) = find_contradictions(ledger)

    assert found.entry1.timestamp == 3
    assert found.entry2.timestamp == 2


def test_theme_matching_is_case_insensitive_substring() -> None:
    themes = tag_themes([fb(1, "commented", "Could be EDGIER honestly"), fb(2, "commented", "Too Dark for paid")])

    assert [e.timestamp for e in themes["darker"]] == [1]
    assert [e.timestamp for e in themes["lighter"]] == [2]


def test_entries_without_comments_are_never_tagged() -> None:
    assert tag_themes([fb(1, "approved"), fb(2, "rejected", "")]) == {}


def test_one_comment_can_feed_several_axes() -> None:
    ledger = [
        fb(1, "commented", "shorter and darker please", item="A"),
        fb(2, "commented", "expand it", item="B"),
        fb(3, "commented", "softer tone", item="C"),
    ]

    found = find_contradictions(ledger)

    assert len(found) == 2
    assert all(1 in (c.entry1.timestamp, c.entry2.timestamp) for c in found)


def test_direct_contradictions_come_before_thematic_in_axis_order() -> None:
    ledger = [
        fb(1, "commented", "more absurd!", item="A"),
        fb(2, "commented", "more realistic", item="B"),
        fb(3, "commented", "lighter", item="C"),
        fb(4, "commented", "push it", item="D"),
        fb(5, "commented", "too short", item="E"),
        fb(6, "commented", "shorter", item="F"),
        fb(7, "approved", item="G"),
        fb(8, "rejected", item="G"),
    ]

    found = find_contradictions(ledger)

    assert [c.type for c in found] == ["direct", "thematic", "thematic", "thematic"]
    assert [(c.entry1.timestamp, c.entry2.timestamp) for c in found[1:]] == [(6, 5), (3, 4), (2, 1)]


def test_thematic_description_truncates_comments() -> None:
    long_comment = "this is too long " + "x" * 100
    ledger = [fb(1, "commented", long_comment, item="A"), fb(2, "commented", "longer", item="B")]

    (found,) = find_contradictions(ledger)

    assert found.description == f'Mixed signals: "{long_comment[:60]}..." vs "longer..." - help me calibrate.'


def test_detection_is_repeatable() -> None:
    ledger = [fb(1, "approved"), fb(2, "rejected"), fb(3, "commented", "too long"), fb(4, "commented", "longer")]

    first = [c.to_dict() for c in find_contradictions(ledger)]
    second = [c.to_dict() for c in find_contradictions(ledger)]

    assert [{k: v for k, v in c.items() if k != "id"} for c in first] == [
        {k: v for k, v in c.items() if k != "id"} for c in second
    ]
