from __future__ import annotations

from collections.abc import Callable

from PIL import Image

from creative_engine.errors import UpstreamGenerationError
from creative_engine.pipeline.items import new_item
from creative_engine.providers.base import GeneratedImage
from creative_engine.providers.openai_provider import parse_structured


class FakeTextProvider:
    name = "fake-text"
    model = "fake-text-1"

    def __init__(self, reply: Callable[[str, str], str] | None = None) -> None:
        self.reply = reply or (lambda system, user: "[]")
        self.calls: list[tuple[str, str]] = []

    async def generate_text(self, system: str, user: str, max_tokens: int = 8192) -> str:
        self.calls.append((system, user))
        return self.reply(system, user)

    async def generate_structured(self, system: str, user: str, max_tokens: int = 8192):
        return parse_structured(await self.generate_text(system, user, max_tokens))


class FakeImageProvider:
    name = "fake-image"
    model = "fake-image-1"

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.prompts: list[str] = []

    async def generate(self, prompt: str, n: int, aspect_ratio: str) -> list[GeneratedImage]:
        self.prompts.append(prompt)
        if self.fail_on and self.fail_on in prompt:
            raise UpstreamGenerationError("image quota exceeded")
        img = Image.new("RGB", (16, 9), (57, 255, 20))
        return [GeneratedImage(image=img, prompt_used=prompt, provider=self.name, model=self.model, raw_metadata={})]


def add_item(engine, project_id: str, stage: str, title: str, status: str = "pending", parent_id=None) -> dict:
    item = new_item(title=title, description=f"{title} description", parent_id=parent_id, status=status)
    engine.items.add_items(project_id, stage, [item])
    return item
