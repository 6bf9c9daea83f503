from __future__ import annotations

import logging
from typing import Any

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from creative_engine.config import settings
from creative_engine.engine import Engine
from creative_engine.errors import CreativeEngineError
from creative_engine.generation import FRAMES_DIR
from creative_engine.log import configure_logging
from creative_engine.memory.contradictions import detect

logger = logging.getLogger(__name__)


class CreateProjectBody(BaseModel):
    name: str = ""
    brandContext: dict[str, Any] = Field(default_factory=dict)


class StatusBody(BaseModel):
    status: str
    comment: str | None = None


class CommentBody(BaseModel):
    comment: str | None = None


class ProjectBody(BaseModel):
    projectId: str


class StrategiesBody(ProjectBody):
    count: int = 5
    direction: str | None = None


class ConceptsBody(ProjectBody):
    count: int = 5
    strategyId: str | None = None
    direction: str | None = None


class ScriptBody(ProjectBody):
    conceptId: str


class StoryboardBody(ProjectBody):
    scriptId: str


class ReframeBody(ProjectBody):
    storyboardId: str
    frameId: str
    direction: str | None = None


class IterateBody(ProjectBody):
    stage: str
    itemId: str
    direction: str | None = None


def _key_present(value: str | None) -> bool:
    return bool(value) and value != "your-key-here"


def create_app(engine: Engine | None = None) -> FastAPI:
    configure_logging()
    engine = engine or Engine.build()

    app = FastAPI(title="creative_engine")
    app.state.engine = engine

    @app.exception_handler(CreativeEngineError)
    async def _engine_error(request: Request, exc: CreativeEngineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "hasOpenaiKey": _key_present(settings.openai_api_key),
            "hasGeminiKey": _key_present(settings.gemini_api_key),
        }

    # Projects

    @app.get("/api/projects")
    def list_projects():
        return {"projects": [p.to_dict() for p in engine.projects.list_projects()]}

    @app.post("/api/projects")
    def create_project(body: CreateProjectBody):
        project = engine.projects.create(body.name, body.brandContext)
        return {"project": project.to_dict()}

    @app.get("/api/projects/{project_id}")
    def get_project(project_id: str):
        return {"project": engine.projects.get(project_id).to_dict()}

    # Items and feedback

    @app.get("/api/items/{project_id}/{stage}")
    def list_items(project_id: str, stage: str):
        return {"items": engine.items.list_items(project_id, stage)}

    @app.post("/api/items/{project_id}/{stage}/{item_id}/status")
    def update_status(project_id: str, stage: str, item_id: str, body: StatusBody):
        item = engine.items.set_status(project_id, stage, item_id, body.status, body.comment)
        return {"item": item}

    @app.post("/api/items/{project_id}/{stage}/{item_id}/comment")
    def add_comment(project_id: str, stage: str, item_id: str, body: CommentBody):
        item = engine.items.add_comment(project_id, stage, item_id, body.comment or "")
        return {"item": item}

    @app.get("/api/feedback/{project_id}")
    def get_feedback(project_id: str):
        return {"feedback": [e.to_dict() for e in engine.ledger.list(project_id)]}

    @app.get("/api/contradictions/{project_id}")
    def get_contradictions(project_id: str):
        return {"contradictions": [c.to_dict() for c in detect(engine.ledger, project_id)]}

    @app.get("/api/patterns/{project_id}")
    def get_patterns(project_id: str):
        return {"patterns": engine.learner.get(project_id).to_dict()}

    @app.get("/api/context/{project_id}")
    def get_context(project_id: str):
        return engine.compiler.compile(project_id).to_dict()

    # Text generation

    @app.post("/api/generate/strategies")
    async def generate_strategies(body: StrategiesBody):
        return await engine.generation.generate_strategies(body.projectId, body.count, body.direction)

    @app.post("/api/generate/concepts")
    async def generate_concepts(body: ConceptsBody):
        return await engine.generation.generate_concepts(body.projectId, body.count, body.strategyId, body.direction)

    @app.post("/api/generate/scripts")
    async def generate_script(body: ScriptBody):
        return await engine.generation.generate_script(body.projectId, body.conceptId)

    @app.post("/api/generate/scripts/batch")
    def batch_scripts(body: ProjectBody, background_tasks: BackgroundTasks):
        plan = engine.generation.plan_batch(body.projectId, "scripts")
        if plan.parents:
            background_tasks.add_task(engine.generation.run_batch, plan)
        return plan.response()

    @app.post("/api/generate/iterate")
    async def iterate(body: IterateBody):
        return await engine.generation.iterate(body.projectId, body.stage, body.itemId, body.direction)

    @app.post("/api/generate/analyze-feedback")
    async def analyze_feedback(body: ProjectBody):
        return {"analysis": await engine.generation.analyze_feedback(body.projectId)}

    # Storyboards and frames

    @app.post("/api/images/storyboard")
    async def generate_storyboard(body: StoryboardBody):
        return await engine.generation.generate_storyboard(body.projectId, body.scriptId)

    @app.post("/api/images/storyboard/reframe")
    async def reframe(body: ReframeBody):
        return await engine.generation.reframe_frame(body.projectId, body.storyboardId, body.frameId, body.direction)

    @app.post("/api/images/storyboard/batch")
    def batch_storyboards(body: ProjectBody, background_tasks: BackgroundTasks):
        plan = engine.generation.plan_batch(body.projectId, "storyboards")
        if plan.parents:
            background_tasks.add_task(engine.generation.run_batch, plan)
        return plan.response()

    @app.get("/api/images/{project_id}/frames/{filename}")
    def get_frame(project_id: str, filename: str):
        try:
            path = engine.assets.path(project_id, FRAMES_DIR, filename)
        except ValueError:
            raise HTTPException(status_code=404, detail="frame not found")
        if not path.exists():
            raise HTTPException(status_code=404, detail="frame not found")
        return FileResponse(path, media_type="image/png")

    return app


app = create_app()
