# plant_quiz/schemas/quiz.py
from typing import Any, Dict, List, Optional, Union

from quiz_engine.models import CamelModel, CatalogItem


class FieldValidationRequest(CamelModel):
    question_id: Union[int, str]
    response: Any = None  # raw input, shaped as for FormSession.record_response


class FieldValidationResult(CamelModel):
    question_id: Union[int, str]
    error: Optional[str] = None


class ScoreRequest(CamelModel):
    tags: List[str]


class ScoreResult(CamelModel):
    item: CatalogItem
    raw_score: int
    normalized_score: float
    final_score: float


class ConfigValidationResult(CamelModel):
    valid: bool
    summary: Dict[str, Any]


class LeadAccepted(CamelModel):
    accepted: bool = True
