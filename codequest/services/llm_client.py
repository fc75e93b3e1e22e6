"""OpenAI-compatible chat client (Groq endpoint by default)"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai

from codequest.config import settings
from codequest.core.exceptions import GeneratorError

logger = logging.getLogger(__name__)


class LLMClient:
    """Thin wrapper around ``chat.completions`` that always yields text or raises GeneratorError."""

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.model = model
        self._client = None
        if api_key:
            self._client = openai.OpenAI(
                api_key=api_key,
                base_url=base_url or settings.LLM_BASE_URL,
                timeout=timeout or settings.LLM_TIMEOUT_SECONDS,
            )

    @property
    def available(self) -> bool:
        return self._client is not None

    def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 1500,
    ) -> str:
        """
        Run one chat completion.

        Returns:
            The stripped content of the first choice

        Raises:
            GeneratorError: No API key, API failure or empty reply
        """
        if self._client is None:
            raise GeneratorError("Text generation API key is not configured", status_code=401)

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as e:
            logger.warning(f"Chat completion failed ({self.model}): {e}")
            raise GeneratorError(f"Text generation request failed: {type(e).__name__}")

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content or not content.strip():
            raise GeneratorError("Text generation returned an empty reply")
        return content.strip()


def extract_first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Find the first balanced ``{...}`` in free text and parse it.

    Braces inside JSON strings are ignored. Returns None when no parsable
    object exists, e.g. for prose or a truncated reply.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start:pos + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find("{", start + 1)
    return None
