from __future__ import annotations

import io
import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from PIL import Image

from creative_engine import prompts
from creative_engine.config import settings
from creative_engine.errors import NotFound, UpstreamGenerationError, ValidationError
from creative_engine.memory.context import ContextCompiler
from creative_engine.memory.ledger import FeedbackLedger
from creative_engine.pipeline.items import ItemStore, check_stage, new_comment, new_item
from creative_engine.pipeline.projects import ProjectIndex
from creative_engine.providers.base import ImageProvider, TextProvider
from creative_engine.storage import AssetStore, new_id, now_ms

logger = logging.getLogger(__name__)

FRAMES_DIR = "frames"

BATCH_DONE_MESSAGES = {
    "scripts": "All approved concepts already have scripts.",
    "storyboards": "All approved scripts already have storyboards.",
}


def _pil_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def frame_url(project_id: str, filename: str) -> str:
    return f"/api/images/{project_id}/{FRAMES_DIR}/{filename}"


@dataclass
class BatchPlan:
    project_id: str
    stage: str
    parents: list[dict[str, Any]] = field(default_factory=list)

    def response(self) -> dict[str, Any]:
        if not self.parents:
            return {"status": "done", "count": 0, "generated": 0, "message": BATCH_DONE_MESSAGES[self.stage]}
        return {
            "status": "generating",
            "count": len(self.parents),
            "message": (
                f"Generating {self.stage} for {len(self.parents)} approved items. "
                f"Poll GET /api/items/{self.project_id}/{self.stage} for updates."
            ),
        }


class GenerationService:
    """
    Every call compiles the project's full memory into the system prompt,
    then writes what comes back as new (or updated) pipeline items.
    """

    def __init__(
        self,
        projects: ProjectIndex,
        items: ItemStore,
        ledger: FeedbackLedger,
        compiler: ContextCompiler,
        assets: AssetStore,
        text_provider: Callable[[], TextProvider],
        image_provider: Callable[[], ImageProvider],
    ) -> None:
        self.projects = projects
        self.items = items
        self.ledger = ledger
        self.compiler = compiler
        self.assets = assets
        self.text_provider = text_provider
        self.image_provider = image_provider
        self._in_flight_lock = threading.Lock()
        self._in_flight: dict[tuple[str, str], set[str]] = {}

    async def generate_structured(
        self,
        stage_prompt: str,
        user_message: str,
        project_id: str,
        max_tokens: int = 8192,
    ) -> Any:
        ctx = self.compiler.compile(project_id)
        system = prompts.system_prompt(stage_prompt, ctx)
        provider = self.text_provider()
        logger.info(
            "generating project=%s provider=%s feedback=%d contradictions=%d",
            project_id,
            provider.name,
            len(ctx.feedback),
            len(ctx.contradictions),
        )
        return await provider.generate_structured(system, user_message, max_tokens=max_tokens)

    # Strategies / concepts

    async def generate_strategies(self, project_id: str, count: int = 5, direction: str | None = None) -> dict[str, Any]:
        self.projects.get(project_id)
        if direction:
            user_msg = f"Generate {count} strategy pillars. Creative direction hint: {direction}"
        else:
            user_msg = f"Generate {count} fresh strategy pillars for the current brand."

        result = await self.generate_structured(prompts.STRATEGY_PROMPT, user_msg, project_id)
        if not isinstance(result, list):
            return {"items": [], "generated": 0, "raw": result}

        new = [
            new_item(
                title=s.get("title") or "Untitled strategy",
                description=s.get("description") or "",
                details=s.get("details") or [],
                exampleConcepts=s.get("exampleConcepts") or [],
            )
            for s in result
            if isinstance(s, dict)
        ]
        updated = self.items.add_items(project_id, "strategies", new)
        return {"items": updated, "generated": len(new)}

    async def generate_concepts(
        self,
        project_id: str,
        count: int = 5,
        strategy_id: str | None = None,
        direction: str | None = None,
    ) -> dict[str, Any]:
        self.projects.get(project_id)
        user_msg = f"Generate {count} creative concepts."
        if strategy_id:
            strategy = next(
                (s for s in self.items.list_items(project_id, "strategies") if s.get("id") == strategy_id), None
            )
            if strategy:
                user_msg += f' These should align with the strategy: "{strategy["title"]}": {strategy.get("description")}'
        if direction:
            user_msg += f" Additional direction: {direction}"

        result = await self.generate_structured(prompts.CONCEPT_PROMPT, user_msg, project_id)
        if not isinstance(result, list):
            return {"items": [], "generated": 0, "raw": result}

        new = [
            new_item(
                title=c.get("title") or "Untitled concept",
                description=c.get("description") or "",
                parent_id=strategy_id or None,
                tier=c.get("tier") or "A",
                format=c.get("format") or "Semi-Realism",
                duration=c.get("duration") or "20s",
                heroCopy=c.get("heroCopy") or "",
                hooks=c.get("hooks") or [],
                caption=c.get("caption") or "",
            )
            for c in result
            if isinstance(c, dict)
        ]
        updated = self.items.add_items(project_id, "concepts", new)
        return {"items": updated, "generated": len(new)}

    # Scripts

    async def _script_for(self, project_id: str, concept: dict[str, Any]) -> dict[str, Any]:
        hooks = " | ".join(concept.get("hooks") or []) or "None"
        user_msg = (
            "Write a detailed shot-by-shot script for this concept:\n\n"
            f'Title: "{concept.get("title")}"\n'
            f"Description: {concept.get('description')}\n"
            f"Format: {concept.get('format')}\n"
            f"Duration: {concept.get('duration')}\n"
            f'Hero Copy: "{concept.get("heroCopy")}"\n'
            f"Existing hooks: {hooks}"
        )
        result = await self.generate_structured(prompts.SCRIPT_PROMPT, user_msg, project_id)
        parsed = result if isinstance(result, dict) and "raw" not in result else {}
        return new_item(
            title=f"Script: {concept.get('title')}",
            description=concept.get("description") or "",
            parent_id=concept["id"],
            tier=concept.get("tier"),
            format=concept.get("format"),
            duration=concept.get("duration"),
            heroCopy=concept.get("heroCopy"),
            script=parsed.get("script") or result,
            hooks=parsed.get("hooks") or concept.get("hooks") or [],
            caption=parsed.get("caption") or concept.get("caption") or "",
            productionNotes=parsed.get("production_notes") or "",
        )

    async def generate_script(self, project_id: str, concept_id: str) -> dict[str, Any]:
        concepts = self.items.list_items(project_id, "concepts")
        concept = next((c for c in concepts if c.get("id") == concept_id), None)
        if concept is None:
            raise NotFound("Concept not found")
        item = await self._script_for(project_id, concept)
        updated = self.items.add_items(project_id, "scripts", [item])
        return {"item": item, "items": updated}

    # Storyboards

    async def _frame_prompts(self, project_id: str, script: dict[str, Any]) -> list[dict[str, Any]]:
        user_msg = (
            "Generate storyboard frame image prompts for this script:\n\n"
            f'Title: "{script.get("title")}"\n'
            f"Format: {script.get('format')}\n"
            f"Duration: {script.get('duration')}\n\n"
            f"Shot list:\n{prompts.describe_shots(script.get('script'))}\n\n"
            "Create one image prompt per shot. Keep character descriptions consistent across all frames."
        )
        result = await self.generate_structured(prompts.STORYBOARD_PROMPT, user_msg, project_id, max_tokens=4096)
        frames = [f for f in result if isinstance(f, dict)] if isinstance(result, list) else []
        if not frames:
            raise UpstreamGenerationError("Failed to generate frame prompts")
        return frames

    async def _render_frame(self, project_id: str, image_prompt: str) -> str:
        images = await self.image_provider().generate(
            prompt=image_prompt, n=1, aspect_ratio=settings.storyboard_aspect_ratio
        )
        if not images:
            raise UpstreamGenerationError("image provider returned no images")
        asset = self.assets.add(project_id, FRAMES_DIR, "frame.png", _pil_to_png_bytes(images[0].image))
        return frame_url(project_id, asset["filename"])

    async def _storyboard_for(self, project_id: str, script: dict[str, Any]) -> dict[str, Any]:
        frames = await self._frame_prompts(project_id, script)
        # Resolve once so a missing key fails the whole board rather than every frame.
        self.image_provider()

        rendered: list[dict[str, Any]] = []
        for frame in frames:
            out = {
                "id": new_id(),
                "scene": frame.get("scene"),
                "description": frame.get("description"),
                "imagePrompt": frame.get("image_prompt") or "",
                "imageUrl": None,
                "notes": frame.get("notes"),
                "status": "pending",
            }
            try:
                out["imageUrl"] = await self._render_frame(project_id, out["imagePrompt"])
            except Exception as exc:
                logger.warning("frame render failed project=%s scene=%s: %s", project_id, out["scene"], exc)
                out["error"] = str(exc)
            rendered.append(out)

        title = str(script.get("title") or "")
        return new_item(
            title=f"Board: {title.replace('Script: ', '', 1)}",
            description=script.get("description") or "",
            parent_id=script["id"],
            tier=script.get("tier"),
            format=script.get("format"),
            duration=script.get("duration"),
            frames=rendered,
        )

    async def generate_storyboard(self, project_id: str, script_id: str) -> dict[str, Any]:
        scripts = self.items.list_items(project_id, "scripts")
        script = next((s for s in scripts if s.get("id") == script_id), None)
        if script is None:
            raise NotFound("Script not found")
        item = await self._storyboard_for(project_id, script)
        updated = self.items.add_items(project_id, "storyboards", [item])
        return {"item": item, "items": updated}

    async def reframe_frame(
        self,
        project_id: str,
        storyboard_id: str,
        frame_id: str,
        direction: str | None = None,
    ) -> dict[str, Any]:
        board = next(
            (b for b in self.items.list_items(project_id, "storyboards") if b.get("id") == storyboard_id), None
        )
        if board is None:
            raise NotFound("Storyboard not found")
        frame = next((f for f in board.get("frames") or [] if f.get("id") == frame_id), None)
        if frame is None:
            raise NotFound("Frame not found")

        image_prompt = frame.get("imagePrompt") or ""
        if direction:
            refined = await self.text_provider().generate_text(
                system="You refine image generation prompts.",
                user=(
                    "Refine this image generation prompt based on feedback:\n\n"
                    f'Original prompt: "{image_prompt}"\n'
                    f'Feedback: "{direction}"\n\n'
                    "Return ONLY the refined prompt text, nothing else."
                ),
                max_tokens=1024,
            )
            image_prompt = refined.strip() or image_prompt

        image_url = await self._render_frame(project_id, image_prompt)

        with self.items.store.lock(project_id):
            # Re-read so a concurrent edit to another frame is not lost.
            board = self.items.get_item(project_id, "storyboards", storyboard_id)
            frames = []
            for f in board.get("frames") or []:
                if f.get("id") == frame_id:
                    f = {**f, "imagePrompt": image_prompt, "imageUrl": image_url, "error": None, "regeneratedAt": now_ms()}
                frames.append(f)
            self.items.update_item(project_id, "storyboards", storyboard_id, {"frames": frames})
        return {"frame": next(f for f in frames if f.get("id") == frame_id)}

    # Batches

    def plan_batch(self, project_id: str, stage: str) -> BatchPlan:
        """
        Pick approved upstream items with no downstream item yet, skipping any
        already being generated by an earlier batch, and mark them in flight.
        """
        if stage not in BATCH_DONE_MESSAGES:
            raise ValidationError(f"Batch generation is not available for {stage!r}")
        self.projects.get(project_id)
        with self._in_flight_lock:
            in_flight = self._in_flight.get((project_id, stage), set())
            parents = self.items.pending_parents(project_id, stage, exclude_ids=in_flight)
            if parents:
                self._in_flight[(project_id, stage)] = in_flight | {p["id"] for p in parents}
        logger.info("batch planned project=%s stage=%s count=%d", project_id, stage, len(parents))
        return BatchPlan(project_id=project_id, stage=stage, parents=parents)

    async def run_batch(self, plan: BatchPlan) -> int:
        """Generate one child per parent; a failure is recorded on that parent only."""
        parent_stage = "concepts" if plan.stage == "scripts" else "scripts"
        generated = 0
        for parent in plan.parents:
            try:
                if plan.stage == "scripts":
                    child = await self._script_for(plan.project_id, parent)
                else:
                    child = await self._storyboard_for(plan.project_id, parent)
                self.items.add_items(plan.project_id, plan.stage, [child])
                if parent.get("error"):
                    self.items.update_item(plan.project_id, parent_stage, parent["id"], {"error": None})
                generated += 1
            except Exception as exc:
                logger.exception(
                    "batch item failed project=%s stage=%s parent=%s", plan.project_id, plan.stage, parent["id"]
                )
                try:
                    self.items.update_item(plan.project_id, parent_stage, parent["id"], {"error": str(exc)})
                except NotFound:
                    logger.warning("batch parent vanished project=%s parent=%s", plan.project_id, parent["id"])
            finally:
                with self._in_flight_lock:
                    key = (plan.project_id, plan.stage)
                    in_flight = self._in_flight.get(key)
                    if in_flight is not None:
                        in_flight.discard(parent["id"])
                        if not in_flight:
                            del self._in_flight[key]
        logger.info(
            "batch finished project=%s stage=%s generated=%d/%d",
            plan.project_id,
            plan.stage,
            generated,
            len(plan.parents),
        )
        return generated

    # Iteration / analysis

    async def iterate(self, project_id: str, stage: str, item_id: str, direction: str | None = None) -> dict[str, Any]:
        item = self.items.get_item(project_id, check_stage(stage), item_id)
        history = "\n".join(
            f"[{e.action}] {e.comment or 'No comment'}" for e in self.ledger.list(project_id) if e.item_id == item_id
        )
        user_msg = (
            "ITERATE on this existing item based on feedback:\n\n"
            f'Current item: "{item.get("title")}"\n'
            f"Description: {item.get('description')}\n"
            f"Status: {item.get('status')}\n\n"
            f"Feedback received:\n{history or 'No specific feedback yet.'}\n\n"
            f"{f'Additional direction: {direction}' if direction else ''}\n\n"
            "Generate an IMPROVED version that addresses the feedback. Return the same JSON format."
        )
        result = await self.generate_structured(prompts.ITERATE_PROMPTS[stage], user_msg, project_id)
        revised = result[0] if isinstance(result, list) and result else result
        if not isinstance(revised, dict) or "raw" in revised:
            revised = {}

        updates: dict[str, Any] = {"status": "pending"}
        for key in ("description", "details", "hooks", "caption", "script"):
            if revised.get(key):
                updates[key] = revised[key]
        if revised.get("production_notes"):
            updates["productionNotes"] = revised["production_notes"]
        note = f"[AI] Iterated based on feedback. {direction or ''}".strip()

        with self.items.store.lock(project_id):
            # Re-read so comments added while the provider was busy are kept.
            current = self.items.get_item(project_id, stage, item_id)
            updates["comments"] = [*(current.get("comments") or []), new_comment(note, author="system")]
            updated = self.items.update_item(project_id, stage, item_id, updates)
        return {"item": updated}

    async def analyze_feedback(self, project_id: str) -> str:
        ctx = self.compiler.compile(project_id)
        if ctx.project is None:
            raise NotFound("Project not found")
        summary = ctx.summary
        user_msg = (
            "Analyze all feedback for this project and give me actionable insights.\n\n"
            f"Total decisions: {summary['totalFeedback']}\n"
            f"Approved: {summary['approvedCount']}\n"
            f"Rejected: {summary['rejectedCount']}\n"
            f"Revisions: {summary['revisionCount']}\n"
            f"Active contradictions: {summary['activeContradictions']}\n\n"
            f"Full feedback history:\n{json.dumps([e.to_dict() for e in ctx.feedback], indent=2)}"
        )
        system = f"{prompts.brand_block(ctx.project)}\n\n{prompts.FEEDBACK_ANALYSIS_PROMPT}"
        return await self.text_provider().generate_text(system, user_msg, max_tokens=4096)
