"""
Chat-completion client for the field-mapping step.

The OpenAI SDK client is created on first use so the application can start
without credentials; a missing key then surfaces as a per-file LLM error.
"""

import json
import re
from typing import Any

from loguru import logger
from openai import AsyncOpenAI

from ..core.config import Settings
from ..core.exceptions import LLMResponseError
from .prompts import SYSTEM_PROMPT

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) block, if present"""
    content = content.strip()
    match = _FENCE_RE.match(content)
    if match:
        logger.debug("Removing code block markers")
        return match.group(1).strip()
    return content


def parse_llm_json(content: str) -> dict[str, Any]:
    """Parse the model output into a JSON object"""
    cleaned = strip_code_fences(content)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid JSON: {e}", details={"content": cleaned[:500]}) from e

    if not isinstance(data, dict):
        raise LLMResponseError(
            f"Expected a JSON object, got {type(data).__name__}",
            details={"content": cleaned[:500]},
        )
    return data


class LLMClient:
    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        store: bool = True,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.store = store
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Send one system + user message pair and return the reply text"""
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            store=self.store,
        )
        content = completion.choices[0].message.content or ""
        logger.debug("LLM response received", model=self.model, chars=len(content))
        return content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def create_llm_client(settings: Settings) -> LLMClient:
    return LLMClient(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        store=settings.llm_store,
    )
