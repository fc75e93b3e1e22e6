"""Code review routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from codequest.core.database import get_db
from codequest.schemas.review import DiagramRequest, DiagramResponse, ReviewRequest, ReviewResponse
from codequest.services.code_review_service import code_review_service
from codequest.services.diagram_service import diagram_service

router = APIRouter()


@router.post("/", response_model=ReviewResponse)
def review_code(request: ReviewRequest, db: Session = Depends(get_db)):
    """
    Markdown review of a code snippet

    Args:
        request: Code, language label and optional username
        db: Database session

    Returns:
        Review text; a generic review when the model is unavailable
    """
    return code_review_service.review(
        request.code,
        language=request.language,
        username=request.username,
        db=db,
    )


@router.post("/generate-diagram", response_model=DiagramResponse)
def generate_diagram(request: DiagramRequest, db: Session = Depends(get_db)):
    """Mermaid class, flowchart, sequence or ER diagram for a code snippet"""
    return diagram_service.generate(
        request.code,
        language=request.language,
        diagram_type=request.diagram_type,
        username=request.username,
        db=db,
    )
