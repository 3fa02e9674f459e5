# quiz_engine/responses.py
# Builds typed Response records from raw UI input.

from datetime import datetime
from typing import Any, Optional

from .models import (
    AnswerOption,
    CheckboxResponse,
    ChoiceResponse,
    MultipleChoiceResponse,
    Response,
    SliderResponse,
    TextResponse,
    utc_now,
)


def build_response(question: Any, raw_input: Any, timestamp: Optional[datetime] = None) -> Response:
    """
    Builds the Response variant matching the question's type.

    Works for questions and lead form fields alike (fields are keyed by ``name``).

    Args:
        question: A question (or lead field) model.
        raw_input: option id for multiple_choice, label index for slider,
                   a string for text/email/textarea, an option value for
                   select/radio, a list of option values for checkbox.
        timestamp: When the response was given; defaults to now.
    """
    question_id = getattr(question, "id", None)
    if question_id is None:
        question_id = getattr(question, "name")
    common = {
        "question_id": question_id,
        "question_text": getattr(question, "text", None) or getattr(question, "label", None) or "",
        "timestamp": timestamp or utc_now(),
    }
    question_type = question.type

    if question_type == "multiple_choice":
        option_id = raw_input.id if isinstance(raw_input, AnswerOption) else raw_input
        option = next((o for o in question.options if o.id == option_id), None)
        return MultipleChoiceResponse(
            **common,
            selected_option_id=option_id,
            selected_option=option,
            tags=list(option.tags) if option else [],
            weight=option.weight if option else 1.0,
        )

    if question_type == "slider":
        config = question.slider_config
        index = _label_index(raw_input)
        in_range = index is not None and 0 <= index < len(config.labels)
        weights = config.weights or []
        return SliderResponse(
            **common,
            selected_value=raw_input,
            selected_label=config.labels[index] if in_range else "",
            tags=list(config.tags[index]) if in_range else [],
            weight=weights[index] if in_range and index < len(weights) else 1.0,
        )

    if question_type in ("text", "email", "textarea"):
        value = raw_input if isinstance(raw_input, str) else ("" if raw_input is None else str(raw_input))
        return TextResponse(**common, type=question_type, value=value.strip())

    if question_type in ("select", "radio"):
        return ChoiceResponse(**common, type=question_type, value=raw_input)

    if question_type == "checkbox":
        if raw_input is None:
            values = []
        elif isinstance(raw_input, (list, tuple, set)):
            values = list(raw_input)
        else:
            values = [raw_input]
        return CheckboxResponse(**common, selected_values=values)

    raise ValueError(f"Unsupported question type: {question_type}")


def _label_index(value: Any) -> Optional[int]:
    """Slider label index for an int or an integral float (JSON sends 2.0); None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
