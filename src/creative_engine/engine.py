from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from creative_engine.config import settings
from creative_engine.errors import UpstreamGenerationError
from creative_engine.generation import GenerationService
from creative_engine.memory.context import ContextCompiler
from creative_engine.memory.ledger import FeedbackLedger
from creative_engine.memory.patterns import PatternLearner
from creative_engine.pipeline.items import ItemStore
from creative_engine.pipeline.projects import ProjectIndex
from creative_engine.providers.base import ImageProvider, TextProvider
from creative_engine.storage import AssetStore, DocumentStore, FileDocumentStore


def _get_openai_text() -> TextProvider:
    if not settings.openai_api_key:
        raise UpstreamGenerationError("OPENAI_API_KEY is not set", status_code=400)
    from creative_engine.providers.openai_provider import OpenAITextProvider

    return OpenAITextProvider(api_key=settings.openai_api_key)


def _get_gemini_images() -> ImageProvider:
    if not settings.gemini_api_key:
        raise UpstreamGenerationError("GEMINI_API_KEY is not set", status_code=400)
    from creative_engine.providers.gemini_provider import GeminiImageProvider

    return GeminiImageProvider(api_key=settings.gemini_api_key)


@dataclass
class Engine:
    store: DocumentStore
    assets: AssetStore
    projects: ProjectIndex
    learner: PatternLearner
    ledger: FeedbackLedger
    items: ItemStore
    compiler: ContextCompiler
    generation: GenerationService

    @classmethod
    def build(
        cls,
        store: DocumentStore | None = None,
        assets: AssetStore | None = None,
        text_provider: Callable[[], TextProvider] | None = None,
        image_provider: Callable[[], ImageProvider] | None = None,
    ) -> Engine:
        store = store if store is not None else FileDocumentStore()
        assets = assets if assets is not None else AssetStore()
        projects = ProjectIndex(store)
        learner = PatternLearner(store)
        ledger = FeedbackLedger(store, learner)
        items = ItemStore(store, projects, ledger)
        compiler = ContextCompiler(projects, items, ledger, learner)
        generation = GenerationService(
            projects=projects,
            items=items,
            ledger=ledger,
            compiler=compiler,
            assets=assets,
            text_provider=text_provider or _get_openai_text,
            image_provider=image_provider or _get_gemini_images,
        )
        return cls(
            store=store,
            assets=assets,
            projects=projects,
            learner=learner,
            ledger=ledger,
            items=items,
            compiler=compiler,
            generation=generation,
        )
