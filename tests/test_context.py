"""Context compilation and the memory block sent with every generation call."""

from __future__ import annotations

from creative_engine import prompts
from tests.helpers import add_item


def test_summary_counts_are_derived_from_the_ledger(engine, project) -> None:
    a = add_item(engine, project.id, "concepts", "Hook A")
    b = add_item(engine, project.id, "concepts", "Hook B")
    engine.items.set_status(project.id, "concepts", a["id"], "approved")
    engine.items.set_status(project.id, "concepts", a["id"], "rejected", "too long")
    engine.items.set_status(project.id, "concepts", b["id"], "revision", "expand the ending")
    engine.items.add_comment(project.id, "concepts", b["id"], "nice")

    ctx = engine.compiler.compile(project.id)

    assert ctx.summary == {
        "totalFeedback": 4,
        "approvedCount": 1,
        "rejectedCount": 1,
        "revisionCount": 1,
        "commentedCount": 1,
        "activeContradictions": 2,
        "learnedRules": 1,
    }
    assert [c["title"] for c in ctx.concepts] == ["Hook A", "Hook B"]
    assert ctx.project.name == "Launch campaign"


def test_every_compile_sees_the_latest_decision(engine, project) -> None:
    a = add_item(engine, project.id, "concepts", "Hook A")
    assert engine.compiler.compile(project.id).summary["totalFeedback"] == 0

    engine.items.set_status(project.id, "concepts", a["id"], "approved")

    ctx = engine.compiler.compile(project.id)
    assert ctx.summary["approvedCount"] == 1
    assert ctx.concepts[0]["status"] == "approved"


def test_context_serializes_to_plain_data(engine, project) -> None:
    a = add_item(engine, project.id, "strategies", "Anti-brainrot")
    engine.items.set_status(project.id, "strategies", a["id"], "approved")
    engine.items.set_status(project.id, "strategies", a["id"], "rejected")

    data = engine.compiler.compile(project.id).to_dict()

    assert data["project"]["id"] == project.id
    assert data["contradictions"][0]["type"] == "direct"
    assert data["contradictions"][0]["entry1"]["action"] == "approved"
    assert data["patterns"]["approved"][0]["title"] == "Anti-brainrot"
    assert set(data) >= {"strategies", "concepts", "scripts", "storyboards", "feedback", "summary"}


def test_memory_block_lists_decisions_rules_and_existing_work(engine, project) -> None:
    a = add_item(engine, project.id, "concepts", "Reaction Loop")
    b = add_item(engine, project.id, "concepts", "Two Phones")
    s = add_item(engine, project.id, "strategies", "Anti-brainrot")
    engine.items.set_status(project.id, "concepts", a["id"], "approved", "chain absurdity works")
    engine.items.set_status(project.id, "concepts", b["id"], "rejected")
    engine.items.set_status(project.id, "strategies", s["id"], "revision", "less preachy")

    block = prompts.render_memory_block(engine.compiler.compile(project.id))

    assert "APPROVED (what works):" in block
    assert '- "Reaction Loop" (concepts): "chain absurdity works"' in block
    assert '- "Two Phones" (concepts)\n' in block
    assert '- From "Anti-brainrot": less preachy' in block
    assert "EXISTING STRATEGIES (do NOT repeat these):" in block
    assert '- "Reaction Loop": Reaction Loop description [approved]' in block
    assert "ACTIVE CONTRADICTIONS" not in block
    assert block.rstrip().endswith("--- END MEMORY ---")


def test_memory_block_is_empty_for_unknown_project(engine) -> None:
    assert prompts.render_memory_block(engine.compiler.compile("missing")) == ""


def test_system_prompt_carries_brand_context(engine, project) -> None:
    system = prompts.system_prompt(prompts.CONCEPT_PROMPT, engine.compiler.compile(project.id))

    assert "- brand: Matiks" in system
    assert "CREATIVE CONCEPTS" in system
