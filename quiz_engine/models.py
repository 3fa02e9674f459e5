# quiz_engine/models.py
# Typed view of the form configuration document, session responses and results.

from collections import Counter
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

QuestionId = Union[int, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Configuration document ---

class FormMetadata(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str
    version: str = Field(..., pattern=r"^\d+\.\d+(\.\d+)?$")


class ValidationRules(CamelModel):
    # Shape depends on the question variant; unknown keys are kept as-is.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    step: Optional[Union[int, float]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None
    no_special_chars: bool = False
    alphanumeric_only: bool = False
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None
    allowed_domains: Optional[List[str]] = None
    blocked_domains: Optional[List[str]] = None


class AnswerOption(CamelModel):
    id: QuestionId
    text: str
    tags: List[str] = Field(..., min_length=1)
    weight: float = Field(1.0, ge=0)
    description: Optional[str] = None


class ChoiceOption(CamelModel):
    value: Any
    text: str


class SliderConfig(CamelModel):
    labels: List[str] = Field(..., min_length=2, max_length=7)
    tags: List[List[str]]
    weights: Optional[List[float]] = None


class QuestionBase(CamelModel):
    id: QuestionId
    text: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    label: Optional[str] = None
    required: bool = False
    validation: Optional[ValidationRules] = None


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple_choice"]
    options: List[AnswerOption] = Field(..., min_length=2, max_length=10)


class SliderQuestion(QuestionBase):
    type: Literal["slider"]
    slider_config: SliderConfig


class TextQuestion(QuestionBase):
    type: Literal["text"]


class EmailQuestion(QuestionBase):
    type: Literal["email"]


class ChoiceQuestion(QuestionBase):
    type: Literal["select", "radio"]
    options: List[ChoiceOption] = Field(..., min_length=1)


class CheckboxQuestion(QuestionBase):
    type: Literal["checkbox"]
    options: List[ChoiceOption] = Field(..., min_length=1)


Question = Annotated[
    Union[
        MultipleChoiceQuestion,
        SliderQuestion,
        TextQuestion,
        EmailQuestion,
        ChoiceQuestion,
        CheckboxQuestion,
    ],
    Field(discriminator="type"),
]

QUESTION_TYPES = ("multiple_choice", "slider", "text", "email", "select", "radio", "checkbox")
LEAD_FIELD_TYPES = ("text", "email", "select", "radio", "checkbox", "textarea")
CALCULATION_METHODS = ("weighted_tags", "simple_tags", "custom")
DISPLAY_TYPES = ("polaroid", "card", "list", "custom")


class ResultConfig(CamelModel):
    calculation_method: Literal["weighted_tags", "simple_tags", "custom"]
    display_type: Literal["polaroid", "card", "list", "custom"]
    cta_text: str
    restart_text: str
    randomization_factor: Optional[float] = Field(None, ge=0, le=1)


class LeadField(CamelModel):
    name: str
    type: Literal["text", "email", "select", "radio", "checkbox", "textarea"]
    label: str
    required: bool = False
    placeholder: Optional[str] = None
    options: Optional[List[ChoiceOption]] = None
    validation: Optional[ValidationRules] = None


class LeadFormConfig(CamelModel):
    title: str
    description: Optional[str] = None
    fields: List[LeadField]
    submit_text: str


class FormConfig(CamelModel):
    form_metadata: FormMetadata
    styling: Optional[Dict[str, Any]] = None
    questions: List[Question] = Field(..., min_length=1, max_length=50)
    result_config: ResultConfig
    lead_form_config: Optional[LeadFormConfig] = None

    def question_by_id(self, question_id: QuestionId) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


# --- Responses ---

class ResponseBase(CamelModel):
    question_id: QuestionId
    question_text: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    tags: List[str] = Field(default_factory=list)


class MultipleChoiceResponse(ResponseBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    selected_option_id: Optional[QuestionId] = None
    selected_option: Optional[AnswerOption] = None
    weight: float = 1.0


class SliderResponse(ResponseBase):
    type: Literal["slider"] = "slider"
    # Kept loose: a non-numeric value is a validation failure, not a parse failure.
    selected_value: Any = None
    selected_label: str = ""
    weight: float = 1.0


class TextResponse(ResponseBase):
    type: Literal["text", "email", "textarea"] = "text"
    value: str = ""


class ChoiceResponse(ResponseBase):
    type: Literal["select", "radio"] = "select"
    value: Any = None


class CheckboxResponse(ResponseBase):
    type: Literal["checkbox"] = "checkbox"
    selected_values: List[Any] = Field(default_factory=list)


Response = Annotated[
    Union[MultipleChoiceResponse, SliderResponse, TextResponse, ChoiceResponse, CheckboxResponse],
    Field(discriminator="type"),
]


# --- Catalog & results ---

class CatalogItem(CamelModel):
    name: str
    image: str
    description: str
    tags: List[str]


class ScoredItem(CamelModel):
    item: CatalogItem
    raw_score: int
    normalized_score: float
    final_score: float


class ScoreTrace(CamelModel):
    """Full scoring pass: every item ranked, the tie window, and the pick."""
    ranking: List[ScoredItem]
    candidates: List[ScoredItem]
    selected: ScoredItem


class CompletionTime(CamelModel):
    total_ms: int
    total_seconds: int
    average_per_question: int


class FormResult(CamelModel):
    responses: Dict[QuestionId, Response]
    tags: List[str]
    completed_at: datetime
    form_version: str
    total_questions: int
    completion_time: Optional[CompletionTime] = None

    def analytics_record(self) -> Dict[str, Any]:
        """Flat record for the analytics collaborator."""
        return {
            "formVersion": self.form_version,
            "totalQuestions": self.total_questions,
            "completionSeconds": self.completion_time.total_seconds if self.completion_time else None,
            "tagCounts": dict(Counter(self.tags)),
        }


class SavedResult(CamelModel):
    item: CatalogItem
    tags: List[str]
    timestamp: datetime
    cta_clicked: bool = False


# --- Custom Error Classes ---

class ConfigurationError(ValueError):
    """Malformed or incomplete configuration document. Fatal for the quiz flow."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = utc_now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "details": self.details, "timestamp": self.timestamp}


class SessionStateError(RuntimeError):
    """Operation not allowed in the session's current state."""
    pass


class SubmissionError(RuntimeError):
    """Failure inside the completion path; the session stays open for retry."""
    pass
