"""Mermaid diagrams generated from source code"""

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from codequest.config import settings
from codequest.core.exceptions import EmptyCodeError, GeneratorError, ValidationError
from codequest.schemas.review import DiagramResponse
from codequest.services.activity_service import activity_service
from codequest.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

MIN_DIAGRAM_LENGTH = 10

_FORMAT_RULE = "Return ONLY the Mermaid syntax, no markdown code blocks, no explanations."

DIAGRAM_PROMPTS = {
    "class": (
        "You are an expert at analyzing code and creating class diagrams. "
        "Analyze the provided {language} code and generate a Mermaid class diagram showing "
        "classes with their properties, methods with their parameters, "
        "relationships (inheritance, composition, association) and access modifiers.\n"
        f"{_FORMAT_RULE}\n"
        "Example format:\n"
        "classDiagram\n"
        "    class Animal {{\n"
        "        +String name\n"
        "        +makeSound()\n"
        "    }}\n"
        "    class Dog {{\n"
        "        +bark()\n"
        "    }}\n"
        "    Animal <|-- Dog"
    ),
    "flowchart": (
        "You are an expert at analyzing code and creating flowcharts. "
        "Analyze the provided {language} code and generate a Mermaid flowchart showing "
        "program flow, decision points, loops, function calls and the start and end points.\n"
        f"{_FORMAT_RULE}\n"
        "Example format:\n"
        "flowchart TD\n"
        "    Start([Start]) --> Input[Get Input]\n"
        "    Input --> Valid{{Is Valid?}}\n"
        "    Valid -->|Yes| Output[Display Output]\n"
        "    Valid -->|No| End([End])\n"
        "    Output --> End"
    ),
    "sequence": (
        "You are an expert at analyzing code and creating sequence diagrams. "
        "Analyze the provided {language} code and generate a Mermaid sequence diagram showing "
        "object interactions, method calls between objects and message passing.\n"
        f"{_FORMAT_RULE}\n"
        "Example format:\n"
        "sequenceDiagram\n"
        "    participant User\n"
        "    participant System\n"
        "    User->>System: Request Data\n"
        "    System-->>User: Display Data"
    ),
    "er": (
        "You are an expert at analyzing code and creating ER diagrams. "
        "Analyze the provided {language} code, especially data models, and generate a Mermaid ER diagram "
        "showing entities with their attributes, relationships and cardinality.\n"
        f"{_FORMAT_RULE}\n"
        "Example format:\n"
        "erDiagram\n"
        "    USER ||--o{{ ORDER : places\n"
        "    USER {{\n"
        "        string id\n"
        "        string name\n"
        "    }}"
    ),
}

DIAGRAM_TYPES = tuple(DIAGRAM_PROMPTS)

_FENCE = re.compile(r"```(?:mermaid)?[ \t]*\n?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Drop Markdown code fences the model wraps around the diagram."""
    return _FENCE.sub("", text or "").strip()


class DiagramService:
    """Class, flowchart, sequence and ER diagrams in Mermaid syntax"""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient(settings.GROQ_API_KEY_LEARNING, settings.LLM_MODEL)

    def generate(
        self,
        code: str,
        language: str = "javascript",
        diagram_type: str = "class",
        username: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> DiagramResponse:
        """
        Generate a Mermaid diagram for a piece of code.

        Args:
            code: Source to diagram
            language: Language label used in the prompt
            diagram_type: One of ``DIAGRAM_TYPES``
            username: When given together with ``db``, a general activity is logged
            db: Database session

        Returns:
            Diagram text without code fences

        Raises:
            EmptyCodeError: Blank code
            ValidationError: Code too long or unknown diagram type
            GeneratorError: Model unavailable or the reply holds no diagram
        """
        if code is None or not code.strip():
            raise EmptyCodeError()
        if len(code) > settings.MAX_CODE_SIZE:
            raise ValidationError(
                "Code too long",
                details={"message": f"Please provide code under {settings.MAX_CODE_SIZE:,} characters"},
            )
        diagram_type = (diagram_type or "").strip().lower()
        if diagram_type not in DIAGRAM_PROMPTS:
            raise ValidationError(
                "Invalid diagram type",
                details={"message": f"Diagram type must be one of: {', '.join(DIAGRAM_TYPES)}"},
            )

        logger.info(f"Generating {diagram_type} diagram for {len(code)} chars of {language}")
        reply = self.client.complete(
            [
                {"role": "system", "content": DIAGRAM_PROMPTS[diagram_type].format(language=language)},
                {"role": "user", "content": f"Generate a {diagram_type} diagram for this {language} code:\n\n{code}"},
            ],
            temperature=0.3,
            max_tokens=2000,
        )

        diagram = strip_fences(reply)
        if len(diagram) < MIN_DIAGRAM_LENGTH:
            logger.warning(f"Diagram reply too short ({len(diagram)} chars)")
            raise GeneratorError("No valid diagram was generated. The code may be too simple or complex.")

        if username and db is not None:
            activity_service.log_activity(
                db,
                username=username,
                action="general",
                description=f"Generated a {diagram_type} diagram",
                metadata={"language": language, "diagramType": diagram_type, "codeLength": len(code)},
            )

        return DiagramResponse(
            diagram=diagram,
            diagram_type=diagram_type,
            language=language,
            timestamp=datetime.utcnow().isoformat(),
        )


# Singleton instance
diagram_service = DiagramService()
