"""Challenge entry validation and normalization."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from codequest.core.exceptions import ValidationError

_DIFFICULTIES = {"easy", "medium", "hard"}
_PER_LANGUAGE_FIELDS = ("functionName", "signature", "starterCode", "solution")


def _text_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class TestcaseValidator:
    """Strict validator for challenge JSON entries."""

    @staticmethod
    def _normalize_test_case(tc: Dict[str, Any], index: int) -> Dict[str, Any]:
        errors: List[str] = []
        normalized = dict(tc)

        if "args" not in normalized:
            errors.append(f"testCases[{index}].args is required")
        if "expected" not in normalized:
            errors.append(f"testCases[{index}].expected is required")

        args = normalized.get("args")
        if args is None:
            normalized["args"] = []
        elif not isinstance(args, list):
            normalized["args"] = [args]

        if "description" in normalized and normalized["description"] is not None:
            if not isinstance(normalized["description"], str):
                errors.append(f"testCases[{index}].description must be a string")
            else:
                normalized["description"] = normalized["description"].strip()
        else:
            normalized["description"] = ""

        if errors:
            raise ValidationError("Invalid test case", details={"errors": errors})

        return normalized

    @staticmethod
    def _normalize_language_field(payload: Dict[str, Any], field: str, errors: List[str]) -> Dict[str, str]:
        """A per-language field may be a plain string (shared by every language) or a mapping."""
        value = payload.get(field)
        if value is None:
            return {}
        if isinstance(value, str):
            return {"python": value}
        if not isinstance(value, dict):
            errors.append(f"{field} must be a string or an object keyed by language")
            return {}
        return {str(lang).strip().lower(): str(text) for lang, text in value.items() if text is not None}

    @classmethod
    def validate_and_normalize(cls, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        """
        Validate and normalize a challenge entry.

        Returns:
            Tuple[normalized_payload, warnings]
        """
        if not isinstance(payload, dict):
            raise ValidationError("Challenge entry must be a JSON object")

        challenge_id = _text_value(payload.get("id"))
        if not challenge_id:
            raise ValidationError("Challenge entry must have non-empty 'id'")

        errors: List[str] = []
        for field in ("topic", "title"):
            if not _text_value(payload.get(field)):
                errors.append(f"{challenge_id}: '{field}' is required")

        difficulty = _text_value(payload.get("difficulty")).lower()
        if difficulty not in _DIFFICULTIES:
            errors.append(f"{challenge_id}: difficulty must be one of easy, medium, hard")

        per_language = {
            field: cls._normalize_language_field(payload, field, errors)
            for field in _PER_LANGUAGE_FIELDS
        }
        if not per_language["functionName"]:
            errors.append(f"{challenge_id}: 'functionName' is required")
        for lang, name in per_language["functionName"].items():
            if not name.strip().isidentifier():
                errors.append(f"{challenge_id}: functionName.{lang} must be an identifier")

        test_cases = payload.get("testCases")
        if not isinstance(test_cases, list) or not test_cases:
            errors.append(f"{challenge_id}: must have non-empty 'testCases' array")

        if errors:
            raise ValidationError("Invalid challenge", details={"errors": errors})

        normalized_cases: List[Dict[str, Any]] = []
        for idx, tc in enumerate(test_cases):
            if not isinstance(tc, dict):
                raise ValidationError(
                    "Invalid test case",
                    details={"errors": [f"testCases[{idx}] must be an object"]},
                )
            normalized_cases.append(cls._normalize_test_case(tc, idx))

        warnings: List[str] = []
        languages = set(per_language["functionName"])
        if "python" not in languages:
            warnings.append(f"{challenge_id}: no Python variant, projections have nothing to fall back to")
        for lang in sorted(languages):
            if lang not in per_language["solution"]:
                warnings.append(f"{challenge_id}: no reference solution for {lang}")
        if len(normalized_cases) < 2:
            warnings.append(f"{challenge_id}: fewer than two test cases")

        normalized = dict(payload)
        normalized["id"] = challenge_id
        normalized["topic"] = _text_value(payload.get("topic"))
        normalized["title"] = _text_value(payload.get("title"))
        normalized["difficulty"] = difficulty
        normalized["prompt"] = _text_value(payload.get("prompt"))
        normalized.update(per_language)
        normalized["testCases"] = normalized_cases

        return normalized, warnings


testcase_validator = TestcaseValidator()
