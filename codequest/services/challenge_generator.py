"""AI challenge generator with catalog fallback"""

import logging
import re
import secrets
import string
from typing import Iterable, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from codequest.config import settings
from codequest.core.exceptions import GeneratorError, ResourceNotFoundError
from codequest.schemas.challenge import Challenge, DifficultyEnum, GeneratedChallenge
from codequest.services.challenge_catalog import ChallengeCatalog, challenge_catalog, normalize_language
from codequest.services.llm_client import LLMClient, extract_first_json_object

logger = logging.getLogger(__name__)

_LANGUAGE_HINTS = {
    "python": "Use Python 3. Provide a function definition only (no input()).",
    "java": "Use Java 17. Provide public class Solution with a static method; no Scanner/System.in.",
    "javascript": "Use modern JavaScript (ES6+). Provide a function declaration only (no console.log or require).",
    "cpp": "Use C++17. Provide a function definition only (no main() or cin/cout). Include necessary headers in solution.",
    "c": "Use C99. Provide a function definition only (no main() or scanf/printf). Include necessary headers in solution.",
}

_SYSTEM_PROMPT = "Return a valid, minified JSON object and nothing else."

_ID_ALPHABET = string.ascii_lowercase + string.digits


def make_id_from_title(title: Optional[str]) -> str:
    """``ai-<slug>-<6 random chars>``"""
    slug = re.sub(r"[^a-z0-9]+", "-", str(title or "challenge").lower()).strip("-") or "challenge"
    uid = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"ai-{slug}-{uid}"


def build_prompt(language: str, topic: Optional[str], difficulty: Optional[str], exclude_ids: Iterable[str]) -> str:
    exclude_ids = list(exclude_ids or [])
    if exclude_ids:
        blacklist = f"Avoid repeating any challenge with these ids: {', '.join(exclude_ids)}."
    else:
        blacklist = "Do not repeat recent challenges from this session."

    return f"""Generate ONE {language.upper()} coding challenge as STRICT JSON:
{{
  "title": "Challenge title",
  "prompt": "Clear description with a tiny example",
  "language": "{language}",
  "functionName": "functionNameOnly",
  "signature": "language-appropriate function signature only",
  "starterCode": "starter code only",
  "solution": "full correct reference solution in {language}",
  "testCases": [
    {{"args": [inputs...], "expected": output, "description": "short case desc"}}
  ]
}}
Rules:
- Topic: {topic or "General Programming"}
- Difficulty: {difficulty or "easy"}
- Provide 4-6 testCases incl. an edge case.
- {_LANGUAGE_HINTS[language]}
- The solution must pass all testCases.
- {blacklist}
- IMPORTANT: Return ONLY minified JSON (no prose, no markdown, no fences)."""


class ChallengeGenerator:
    """Generates challenges through the chat API, falling back to the static catalog"""

    def __init__(self, client: Optional[LLMClient] = None, catalog: Optional[ChallengeCatalog] = None):
        self.client = client or LLMClient(settings.GROQ_API_KEY_LEARNING, settings.LLM_MODEL)
        self.catalog = catalog or challenge_catalog

    @staticmethod
    def parse_reply(content: str) -> Optional[GeneratedChallenge]:
        """Validate the model's reply; None when it is unusable."""
        data = extract_first_json_object(content)
        if data is None:
            return None
        try:
            return GeneratedChallenge.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Generated challenge rejected: {e.error_count()} validation error(s)")
            return None

    def fallback(
        self,
        language: str,
        topic: Optional[str],
        difficulty: Optional[str],
        exclude_ids: Iterable[str],
    ) -> Challenge:
        """
        Pick a catalog challenge, retrying without the difficulty filter.

        A challenge found on the retry is relabelled with the requested
        difficulty.

        Raises:
            ResourceNotFoundError: Nothing in the catalog matches
        """
        exclude_ids = list(exclude_ids or [])
        challenge = self.catalog.pick_random(topic, difficulty, exclude_ids, language)
        if challenge is not None:
            return challenge

        if difficulty:
            logger.info(f"No catalog challenge for {topic}/{difficulty}; retrying without difficulty")
            challenge = self.catalog.pick_random(topic, None, exclude_ids, language)
            if challenge is not None:
                return challenge.model_copy(update={"difficulty": DifficultyEnum(difficulty)})

        raise ResourceNotFoundError("Matching challenge")

    def generate(
        self,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        language: str = "python",
        exclude_ids: Iterable[str] = (),
    ) -> Tuple[Challenge, str, Optional[str]]:
        """
        Produce one challenge.

        Returns:
            (challenge, source, message) where source is ``ai`` or ``catalog``
            and message explains why the catalog was used
        """
        lang = normalize_language(language)
        difficulty = getattr(difficulty, "value", difficulty)
        if difficulty:
            difficulty = DifficultyEnum(str(difficulty).lower()).value

        if not self.client.available:
            logger.info("Text generation key not configured; serving a catalog challenge")
            return self.fallback(lang, topic, difficulty, exclude_ids), "catalog", "AI generation is not configured"

        try:
            content = self.client.complete(
                [
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(lang, topic, difficulty, exclude_ids)},
                ],
                temperature=0.7,
                max_tokens=1500,
            )
        except GeneratorError as e:
            logger.warning(f"Challenge generation failed, using catalog: {e.message}")
            return self.fallback(lang, topic, difficulty, exclude_ids), "catalog", e.message

        generated = self.parse_reply(content)
        if generated is None:
            logger.warning("Model returned an invalid challenge, using catalog")
            return (
                self.fallback(lang, topic, difficulty, exclude_ids),
                "catalog",
                "Model returned an invalid challenge",
            )

        challenge = Challenge(
            id=make_id_from_title(generated.title),
            topic=topic or generated.topic or "General",
            difficulty=difficulty or "easy",
            title=generated.title,
            prompt=generated.prompt or generated.title,
            language=lang,
            function_name=generated.function_name,
            signature=generated.signature,
            starter_code=generated.starter_code,
            solution=generated.solution,
            test_cases=generated.test_cases,
            source="ai",
        )
        logger.info(f"Generated challenge {challenge.id} ({lang}, {challenge.difficulty.value})")
        return challenge, "ai", None


# Singleton instance
challenge_generator = ChallengeGenerator()
