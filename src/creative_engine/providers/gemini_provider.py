from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from PIL import Image

from creative_engine.config import settings
from creative_engine.errors import UpstreamGenerationError
from creative_engine.providers.base import GeneratedImage

logger = logging.getLogger(__name__)


class GeminiImageProvider:
    name = "gemini"

    def __init__(self, api_key: str, model: str | None = None) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self.client = genai.Client(api_key=api_key)
        self.model = model or settings.gemini_image_model

    async def generate(self, prompt: str, n: int, aspect_ratio: str) -> list[GeneratedImage]:
        """
        Two paths depending on model family:
        - Imagen models: `models.generate_images(...)` (text-to-image)
        - Gemini image models: `models.generate_content(...)` with image response modality
        """
        from google.genai import errors, types  # type: ignore

        enriched = f"{prompt}\nNo text. No logos. No watermarks."
        out: list[GeneratedImage] = []

        try:
            if self.model.startswith("imagen-"):
                resp = await self.client.aio.models.generate_images(
                    model=self.model,
                    prompt=enriched,
                    config=types.GenerateImagesConfig(number_of_images=n, aspect_ratio=aspect_ratio),
                )
                for gi in getattr(resp, "generated_images", []) or []:
                    img_bytes = getattr(getattr(gi, "image", None), "image_bytes", None)
                    if not img_bytes:
                        continue
                    out.append(self._wrap(Image.open(BytesIO(img_bytes)), enriched, {}))
                return out

            # Many image-preview models return one image per call, so loop until n.
            for _ in range(max(1, n)):
                resp = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=[f"{enriched}\nDesired aspect ratio: {aspect_ratio}."],
                    config=types.GenerateContentConfig(
                        response_modalities=["image", "text"],
                        image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                    ),
                )
                extracted = _extract_images_from_generate_content(resp)
                for img, meta in extracted:
                    out.append(self._wrap(img, enriched, meta))
                    if len(out) >= n:
                        return out
                if not extracted:
                    break
        except errors.APIError as exc:
            logger.warning("gemini image request failed model=%s: %s", self.model, exc)
            raise UpstreamGenerationError(f"image generation failed: {exc}") from exc

        return out

    def _wrap(self, image: Image.Image, prompt: str, meta: dict[str, Any]) -> GeneratedImage:
        return GeneratedImage(image=image, prompt_used=prompt, provider=self.name, model=self.model, raw_metadata=meta)


def _extract_images_from_generate_content(resp: Any) -> list[tuple[Image.Image, dict[str, Any]]]:
    out: list[tuple[Image.Image, dict[str, Any]]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            try:
                img = Image.open(BytesIO(data))
            except OSError:
                continue
            out.append((img, {"mime_type": mime}))
    return out
