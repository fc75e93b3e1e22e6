"""Code review schemas"""

from typing import Optional

from pydantic import Field

from codequest.schemas.response import CamelModel


class ReviewRequest(CamelModel):
    code: str
    language: str = Field(default="javascript", max_length=20)
    username: Optional[str] = Field(default=None, max_length=100)


class ReviewResponse(CamelModel):
    """Markdown review; ``source`` is ``ai`` or ``fallback``"""
    success: bool = True
    response: str
    language: str
    source: str
    timestamp: str


class DiagramRequest(CamelModel):
    code: str
    language: str = Field(default="javascript", max_length=20)
    diagram_type: str = Field(default="class", max_length=20)
    username: Optional[str] = Field(default=None, max_length=100)


class DiagramResponse(CamelModel):
    """Mermaid source; ``diagram_type`` is class, flowchart, sequence or er"""
    success: bool = True
    diagram: str
    diagram_type: str
    language: str
    timestamp: str
