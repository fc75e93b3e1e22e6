"""Code review assistant"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from codequest.config import settings
from codequest.core.exceptions import EmptyCodeError, GeneratorError, ValidationError
from codequest.schemas.review import ReviewResponse
from codequest.services.activity_service import activity_service
from codequest.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

MIN_REVIEW_LENGTH = 10

_SYSTEM_PROMPT = (
    "You are a senior software engineer doing a code review. "
    "Answer in Markdown with sections for correctness, readability, performance and suggested fixes. "
    "Quote the lines you refer to."
)


def generic_review(language: str) -> str:
    return f"""## Code Analysis Complete

Your {language} code has been reviewed. Here are some general observations:

### Code Structure
- The code appears to be syntactically correct
- Consider adding comments for better readability
- Follow {language} best practices and conventions

### Recommendations
- Add error handling where appropriate
- Consider code organization and modularity
- Test your code with different input scenarios

*Need more specific feedback? Try providing more complex code or specify particular areas you'd like reviewed.*"""


def _clean(text: str) -> str:
    """Undo escaping some models apply to the whole reply."""
    text = text.replace("\\n", "\n").replace('\\"', '"').replace("\\t", "    ")
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1]
    return text.strip()


class CodeReviewService:
    """Markdown reviews from the chat API with a fixed fallback"""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient(settings.GROQ_API_KEY_LEARNING, settings.LLM_MODEL)

    def review(
        self,
        code: str,
        language: str = "javascript",
        username: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> ReviewResponse:
        """
        Review a piece of code.

        Args:
            code: Source to review
            language: Language label used in the prompt
            username: When given together with ``db``, a code_review activity is logged
            db: Database session

        Raises:
            EmptyCodeError: Blank code
            ValidationError: Code longer than the size ceiling
        """
        if code is None or not code.strip():
            raise EmptyCodeError()
        if len(code) > settings.MAX_CODE_SIZE:
            raise ValidationError(
                "Code too long",
                details={"message": f"Please provide code under {settings.MAX_CODE_SIZE:,} characters"},
            )

        source = "ai"
        text = ""
        try:
            text = _clean(self.client.complete(
                [
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": f"Review this {language} code:\n\n```{language}\n{code}\n```"},
                ],
                temperature=0.3,
                max_tokens=1500,
            ))
        except GeneratorError as e:
            logger.warning(f"Code review unavailable: {e.message}")

        if len(text) < MIN_REVIEW_LENGTH:
            text = generic_review(language)
            source = "fallback"

        if username and db is not None:
            activity_service.log_activity(
                db,
                username=username,
                action="code_review",
                description=f"Reviewed {language} code",
                metadata={"language": language, "codeLength": len(code), "source": source},
            )

        return ReviewResponse(
            response=text,
            language=language,
            source=source,
            timestamp=datetime.utcnow().isoformat(),
        )


# Singleton instance
code_review_service = CodeReviewService()
