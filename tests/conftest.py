"""Pytest configuration for the creative engine test suite."""

from __future__ import annotations

import os
import tempfile

import pytest

# Settings are read at import time; keep test runs away from ./data and real keys.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="creative-engine-test-"))
os.environ["OPENAI_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""

from creative_engine.engine import Engine  # noqa: E402
from creative_engine.storage import AssetStore, MemoryDocumentStore  # noqa: E402

from tests.helpers import FakeImageProvider, FakeTextProvider  # noqa: E402


@pytest.fixture
def text_provider() -> FakeTextProvider:
    return FakeTextProvider()


@pytest.fixture
def image_provider() -> FakeImageProvider:
    return FakeImageProvider()


@pytest.fixture
def engine(tmp_path, text_provider, image_provider) -> Engine:
    return Engine.build(
        store=MemoryDocumentStore(),
        assets=AssetStore(tmp_path),
        text_provider=lambda: text_provider,
        image_provider=lambda: image_provider,
    )


@pytest.fixture
def project(engine):
    return engine.projects.create("Launch campaign", {"brand": "Matiks", "tone": "witty"})
