from __future__ import annotations

import json
from typing import Any

from creative_engine.config import settings
from creative_engine.memory.context import Context
from creative_engine.models import Project

STRATEGY_PROMPT = """You are generating STRATEGY PILLARS for the brand's content.

Each strategy is a high-level creative direction that can spawn 5-10 specific concepts.
Think about: what psychological territory does this strategy own? What audience behavior does it tap into?

Return a JSON array of strategies. Each strategy:
{
  "title": "Strategy name (2-4 words, punchy)",
  "description": "1-2 sentences. What is this strategic angle? Why does it work for the brand?",
  "details": ["Tactical note 1", "Tactical note 2", "Risk or consideration", "Best format/platform fit"],
  "exampleConcepts": ["One-line concept idea 1", "One-line concept idea 2", "One-line concept idea 3"]
}

Each strategy MUST include 3 exampleConcepts.
Generate strategies that are DISTINCT from each other and from the existing strategies.
"""

CONCEPT_PROMPT = """You are generating CREATIVE CONCEPTS for performance ads and organic short-form content.

Each concept is a complete creative idea: a mini-story with a hook, setup, punchline and brand reveal.

Return a JSON array of concepts. Each concept:
{
  "title": "Concept name (2-5 words)",
  "description": "The full concept in 2-3 sentences. What happens? What's the joke? How does it land?",
  "tier": "S" | "A" | "B",
  "format": "Animated" | "Semi-Realism",
  "duration": "15s" | "20s" | "25s" | "30s",
  "heroCopy": "Which hero copy to use as end card",
  "hooks": ["Hook option 1", "Hook option 2", "Hook option 3"],
  "caption": "Social caption. Conversational. Ends with CTA."
}

Tier criteria:
- S: Culture-defining. Could go viral on its own merit.
- A: Strong concept. Solid hook. Will perform in paid and organic.
- B: Good idea but needs iteration.
"""

SCRIPT_PROMPT = """You are writing a SHOT-BY-SHOT SCRIPT for an ad concept.

Include timing, camera direction, dialogue/text overlays, music/sound cues and transition notes.

Return a JSON object:
{
  "script": [
    {
      "time": "0:00-0:03",
      "label": "HOOK",
      "desc": "Exact description of what happens. Camera angle. Text overlay. Sound.",
      "camera": "Close-up / Wide / POV / etc",
      "audio": "Sound effect or music note",
      "text_overlay": "Any on-screen text"
    }
  ],
  "production_notes": "Overall direction for the shoot. Mood. References.",
  "hooks": ["Hook variation A", "Hook variation B", "Hook variation C"],
  "caption": "Caption for organic posting."
}

Be specific. A director should be able to shoot this without asking questions.
"""

STORYBOARD_PROMPT = """You are creating IMAGE GENERATION PROMPTS for the storyboard frames of an ad.

For each shot in the script, write a detailed image prompt that produces a consistent, on-brand frame.

Return a JSON array of frames:
{
  "scene": "HOOK" | "SETUP" | "BUILD" | "PUNCHLINE" | "END CARD",
  "description": "What this frame shows narratively",
  "image_prompt": "Detailed prompt. Style, lighting, composition, character description.",
  "notes": "Timing and transition notes"
}

CONSISTENCY RULES:
- Same character descriptions across all frames
- Consistent lighting and color grade
- Brand elements only in the final frame
"""

FEEDBACK_ANALYSIS_PROMPT = """You are analyzing USER FEEDBACK on creative work to extract patterns and improve future output.

Given the full history of approvals, rejections, revisions and comments, identify:
1. What patterns keep getting approved? Why?
2. What patterns keep getting rejected? Why?
3. Are there contradictions in the feedback?
4. What should the next batch of work lean into?
5. What should it avoid?

Be specific. Reference actual items by name.
"""

STAGE_PROMPTS = {
    "strategies": STRATEGY_PROMPT,
    "concepts": CONCEPT_PROMPT,
    "scripts": SCRIPT_PROMPT,
    "storyboards": STORYBOARD_PROMPT,
}

# Storyboards are iterated with the concept prompt.
ITERATE_PROMPTS = {**STAGE_PROMPTS, "storyboards": CONCEPT_PROMPT}


def brand_block(project: Project | None) -> str:
    brand = project.brand_context if project else {}
    if not brand:
        return settings.default_brand_context.strip()
    lines = [settings.default_brand_context.strip(), "", "BRAND CONTEXT:"]
    for key, value in brand.items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        elif isinstance(value, dict):
            value = json.dumps(value)
        lines.append(f"- {key}: {value}")
    return "\n".join(lines)


def _quoted(title: Any, stage: Any, comment: str | None) -> str:
    line = f'- "{title}" ({stage})'
    if comment:
        line += f': "{comment}"'
    return line


def render_memory_block(ctx: Context) -> str:
    """
    Render the compiled context as the memory section of a system prompt.

    Sections with nothing in them are left out. Existing strategies and
    concepts are listed so the model does not repeat itself.
    """
    if ctx.project is None:
        return ""

    lines = ["", "", "--- MEMORY: FULL PROJECT CONTEXT ---"]

    if ctx.patterns.approved:
        lines += ["", "APPROVED (what works):"]
        lines += [_quoted(p.title, p.stage, p.comment) for p in ctx.patterns.approved]

    if ctx.patterns.rejected:
        lines += ["", "REJECTED (what doesn't work):"]
        lines += [_quoted(p.title, p.stage, p.comment) for p in ctx.patterns.rejected]

    if ctx.patterns.rules:
        lines += ["", "LEARNED RULES (from revision feedback):"]
        lines += [f'- From "{r.source_title}": {r.rule}' for r in ctx.patterns.rules]

    if ctx.contradictions:
        lines += ["", "ACTIVE CONTRADICTIONS (be careful):"]
        lines += [f"- {c.description}" for c in ctx.contradictions]

    if ctx.strategies:
        lines += ["", "EXISTING STRATEGIES (do NOT repeat these):"]
        lines += [f'- "{s.get("title")}": {s.get("description")}' for s in ctx.strategies]

    if ctx.concepts:
        lines += ["", "EXISTING CONCEPTS (do NOT repeat these):"]
        lines += [f'- "{c.get("title")}": {c.get("description")} [{c.get("status")}]' for c in ctx.concepts]

    lines += ["", "--- END MEMORY ---", ""]
    return "\n".join(lines)


def system_prompt(stage_prompt: str, ctx: Context) -> str:
    return f"{brand_block(ctx.project)}\n\n{stage_prompt}{render_memory_block(ctx)}"


def describe_shots(script: Any) -> str:
    if isinstance(script, list):
        return "\n".join(
            f"[{s.get('time')}] {s.get('label')}: {s.get('desc')}" if isinstance(s, dict) else str(s) for s in script
        )
    return json.dumps(script)
