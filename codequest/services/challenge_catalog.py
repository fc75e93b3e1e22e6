"""Static challenge catalog - loads challenges from the bundled JSON file"""

import json
import logging
import random
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from codequest.core.exceptions import FileSystemError, ValidationError
from codequest.schemas.challenge import Challenge
from codequest.schemas.execution import LANGUAGE_ALIASES, LanguageEnum
from codequest.services.testcase_validator import testcase_validator

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "challenges.json"


def normalize_language(language: Any) -> str:
    """Canonical language key; anything unknown is treated as Python."""
    key = str(language or "").strip().lower()
    key = LANGUAGE_ALIASES.get(key, key)
    if key not in {lang.value for lang in LanguageEnum}:
        return LanguageEnum.PYTHON.value
    return key


def _pick(field: Dict[str, str], language: str) -> str:
    if language in field:
        return field[language]
    return field.get("python", "")


class ChallengeCatalog:
    """Read-only catalog of curated challenges"""

    _CACHE_TTL = 60  # seconds

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_CATALOG_PATH
        self._cache: Optional[List[Dict[str, Any]]] = None
        self._cache_time: float = 0
        self._lock = threading.Lock()

    def invalidate_cache(self):
        """Clear the cache so the next call re-reads the catalog file"""
        with self._lock:
            self._cache = None
            self._cache_time = 0

    def _entries(self) -> List[Dict[str, Any]]:
        with self._lock:
            if self._cache is not None and (time.time() - self._cache_time) < self._CACHE_TTL:
                return self._cache

            if not self.path.exists():
                raise FileSystemError(f"Challenge catalog not found: {self.path.name}")

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON in {self.path}: {e}")
                raise FileSystemError("Invalid challenge catalog file")

            raw_entries = data.get("challenges", []) if isinstance(data, dict) else data
            entries = []
            seen = set()
            for raw in raw_entries:
                try:
                    entry, warnings = testcase_validator.validate_and_normalize(raw)
                except ValidationError as e:
                    logger.error(f"Skipping invalid catalog entry: {e.message} {e.details}")
                    continue
                if entry["id"] in seen:
                    logger.error(f"Skipping duplicate catalog id: {entry['id']}")
                    continue
                for warning in warnings:
                    logger.warning(warning)
                seen.add(entry["id"])
                entries.append(entry)

            logger.info(f"Loaded {len(entries)} challenge(s) from {self.path.name}")
            self._cache = entries
            self._cache_time = time.time()
            return entries

    @staticmethod
    def project(entry: Dict[str, Any], language: Any = "python") -> Challenge:
        """
        Project a catalog entry onto one language.

        Per-language fields fall back to the Python variant when the
        requested language has none.
        """
        lang = normalize_language(language)
        return Challenge(
            id=entry["id"],
            topic=entry["topic"],
            difficulty=entry["difficulty"],
            title=entry["title"],
            prompt=entry.get("prompt", ""),
            language=lang,
            function_name=_pick(entry["functionName"], lang),
            signature=_pick(entry["signature"], lang),
            starter_code=_pick(entry["starterCode"], lang),
            solution=_pick(entry["solution"], lang) or None,
            test_cases=entry["testCases"],
            source="catalog",
        )

    def list_topics(self) -> List[str]:
        """Distinct topics in catalog order"""
        topics: List[str] = []
        for entry in self._entries():
            if entry["topic"] not in topics:
                topics.append(entry["topic"])
        return topics

    def pick_random(
        self,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
        language: Any = "python",
    ) -> Optional[Challenge]:
        """
        Pick a random challenge.

        Args:
            topic: Topic filter (case-insensitive); None for any
            difficulty: Difficulty filter; None for any
            exclude_ids: Challenge ids to skip, e.g. already completed ones
            language: Only challenges that define this language are eligible

        Returns:
            Projected challenge or None when nothing matches
        """
        lang = normalize_language(language)
        excluded = set(exclude_ids or ())
        wanted_topic = topic.strip().lower() if topic else None
        wanted_difficulty = difficulty.strip().lower() if difficulty else None

        pool = [
            entry for entry in self._entries()
            if entry["id"] not in excluded
            and (wanted_topic is None or entry["topic"].lower() == wanted_topic)
            and (wanted_difficulty is None or entry["difficulty"] == wanted_difficulty)
            and lang in entry["functionName"]
        ]
        if not pool:
            return None
        return self.project(random.choice(pool), lang)

    def find_by_id(self, challenge_id: str, language: Any = "python") -> Optional[Challenge]:
        entry = next((e for e in self._entries() if e["id"] == challenge_id), None)
        if entry is None:
            return None
        return self.project(entry, language)

    def all_by_topic_and_difficulty(self, topic: str, difficulty: str) -> List[Challenge]:
        """Every catalog challenge of a topic and difficulty (Python projection)"""
        return [
            self.project(entry)
            for entry in self._entries()
            if entry["topic"].lower() == str(topic).lower() and entry["difficulty"] == str(difficulty).lower()
        ]


# Singleton instance
challenge_catalog = ChallengeCatalog()
