from __future__ import annotations

import json
import logging
import re
from typing import Any

from creative_engine.config import settings
from creative_engine.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)


class OpenAITextProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str | None = None) -> None:
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model or settings.openai_text_model

    async def generate_text(self, system: str, user: str, max_tokens: int = 8192) -> str:
        from openai import OpenAIError  # type: ignore

        try:
            resp = await self.client.responses.create(
                model=self.model,
                instructions=system,
                input=user,
                max_output_tokens=max_tokens,
            )
        except OpenAIError as exc:
            logger.warning("openai request failed model=%s: %s", self.model, exc)
            raise UpstreamGenerationError(f"text generation failed: {exc}") from exc

        text = getattr(resp, "output_text", None)
        if text is None:
            text = str(resp)
        return text

    async def generate_structured(self, system: str, user: str, max_tokens: int = 8192) -> Any:
        text = await self.generate_text(system, user, max_tokens=max_tokens)
        return parse_structured(text)


def _strip_code_fences(text: str) -> str:
    s = text.strip()
    m = re.search(r"```(?:json)?\s*(.*?)\s*```", s, re.DOTALL | re.IGNORECASE)
    if m:
        return m.group(1).strip()
    return s


def _try_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return None


def parse_structured(text: str | None) -> Any:
    """
    Best-effort JSON extraction from model output.

    Tries the whole (unfenced) text, then the outermost [...] span, then the
    outermost {...} span. Anything else comes back as {"raw": text} so the
    caller can present a degraded result.
    """
    text = text or ""
    s = _strip_code_fences(text)

    parsed = _try_json(s)
    if isinstance(parsed, (list, dict)):
        return parsed

    for open_ch, close_ch in (("[", "]"), ("{", "}")):
        start = s.find(open_ch)
        end = s.rfind(close_ch)
        if start != -1 and end > start:
            parsed = _try_json(s[start : end + 1])
            if parsed is not None:
                return parsed

    return {"raw": text}
