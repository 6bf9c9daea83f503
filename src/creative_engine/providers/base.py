from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from PIL import Image


@dataclass(frozen=True)
class GeneratedImage:
    image: Image.Image
    prompt_used: str
    provider: str
    model: str
    raw_metadata: dict[str, Any]


class TextProvider(Protocol):
    name: str
    model: str

    async def generate_text(self, system: str, user: str, max_tokens: int = 8192) -> str: ...

    async def generate_structured(self, system: str, user: str, max_tokens: int = 8192) -> Any:
        """Parsed JSON (list or dict), or `{"raw": text}` when the output is not JSON."""
        ...


class ImageProvider(Protocol):
    name: str
    model: str

    async def generate(self, prompt: str, n: int, aspect_ratio: str) -> list[GeneratedImage]: ...
