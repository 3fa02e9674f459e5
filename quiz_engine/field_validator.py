# quiz_engine/field_validator.py
# Per-field validation of responses against the rules declared in the configuration.

import logging
import re
from numbers import Number
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel

from .models import LeadFormConfig, ValidationRules
from .responses import build_response

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Validation error occurred. Please try again."
SPECIAL_CHARS = re.compile(r"[<>{}\[\]\\/]")
ALPHANUMERIC = re.compile(r"[a-zA-Z0-9\s]*")
EMAIL_FORMAT = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
DISPLAY_NAME_LIMIT = 30


class FormValidationResult(BaseModel):
    is_valid: bool
    errors: Dict[str, str]
    error_count: int


def validate_field(question: Any, response: Any) -> Optional[str]:
    """
    Checks one response against its question's type and validation rules.

    Never raises: unexpected failures come back as a generic message.

    Args:
        question: A question or lead field model.
        response: The recorded Response, or None when nothing was answered.

    Returns:
        None when the response is acceptable, otherwise a user-facing reason.
    """
    if is_empty_response(response):
        return f"{get_field_display_name(question)} is required" if question.required else None

    try:
        validator = _FIELD_VALIDATORS[question.type]
        return validator(question, response, question.validation or ValidationRules())
    except Exception as e:
        logger.exception(f"Unexpected error validating field {_field_key(question)}: {e}")
        return GENERIC_ERROR_MESSAGE


def is_empty_response(response: Any) -> bool:
    if response is None:
        return True
    if getattr(response, "selected_option_id", None) is not None:
        return False
    if getattr(response, "selected_value", None) is not None:
        return False
    value = getattr(response, "value", None)
    if value is not None and not (isinstance(value, str) and value.strip() == ""):
        return False
    if getattr(response, "selected_values", None):
        return False
    return True


def get_field_display_name(question: Any) -> str:
    label = getattr(question, "label", None)
    if label:
        return label
    display_name = re.sub(r"\?$", "", getattr(question, "text", "") or "")
    if len(display_name) > DISPLAY_NAME_LIMIT:
        display_name = display_name[:DISPLAY_NAME_LIMIT] + "..."
    return display_name


# --- Type-specific validators ---

def _validate_multiple_choice(question, response, rules: ValidationRules) -> Optional[str]:
    if response.selected_option_id is None:
        return "Please select an option"

    valid_ids = [option.id for option in question.options]
    if response.selected_option_id not in valid_ids:
        return "Invalid option selected"

    # A single-select answer never satisfies minSelections > 1.
    if rules.min_selections and rules.min_selections > 1:
        return f"Please select at least {rules.min_selections} options"

    return None


def _validate_slider(question, response, rules: ValidationRules) -> Optional[str]:
    value = response.selected_value
    if not isinstance(value, Number) or isinstance(value, bool):
        return "Please select a value"

    labels = question.slider_config.labels
    minimum = rules.min if rules.min is not None else 0
    maximum = rules.max if rules.max is not None else (len(labels) - 1 if labels else 10)

    if value < minimum:
        return f"Value must be at least {minimum}"
    if value > maximum:
        return f"Value cannot exceed {maximum}"
    if isinstance(value, float) and not value.is_integer():
        return "Invalid slider value selected"
    if labels and value >= len(labels):
        return "Invalid slider value selected"

    return None


def _validate_text(question, response, rules: ValidationRules) -> Optional[str]:
    text = response.value or ""

    if rules.min_length and len(text) < rules.min_length:
        return f"Response must be at least {rules.min_length} characters"
    if rules.max_length and len(text) > rules.max_length:
        return f"Response must be less than {rules.max_length} characters"

    if rules.pattern:
        try:
            matched = re.search(rules.pattern, text)
        except re.error as e:
            logger.error(f"Invalid validation pattern {rules.pattern!r} on field {_field_key(question)}: {e}")
            return "Configuration error in validation pattern"
        if not matched:
            return rules.pattern_message or "Invalid format"

    if rules.no_special_chars and SPECIAL_CHARS.search(text):
        return "Special characters are not allowed"
    if rules.alphanumeric_only and not ALPHANUMERIC.fullmatch(text):
        return "Only letters, numbers, and spaces are allowed"

    return None


def _validate_email(question, response, rules: ValidationRules) -> Optional[str]:
    email = response.value or ""

    if not is_valid_email_format(email):
        return "Please enter a valid email address"
    if rules.max_length and len(email) > rules.max_length:
        return f"Email address must be less than {rules.max_length} characters"

    domain = email.split("@")[1].lower()
    if rules.allowed_domains and domain not in [d.lower() for d in rules.allowed_domains]:
        return f"Email must be from one of these domains: {', '.join(rules.allowed_domains)}"
    if rules.blocked_domains and domain in [d.lower() for d in rules.blocked_domains]:
        return "This email domain is not allowed"

    return None


def _validate_choice(question, response, rules: ValidationRules) -> Optional[str]:
    selected = response.value
    if selected is None or selected == "":
        return "Please select an option" if question.required else None

    valid_values = [option.value for option in question.options or []]
    if selected not in valid_values:
        return "Invalid selection"

    return None


def _validate_checkbox(question, response, rules: ValidationRules) -> Optional[str]:
    selected = response.selected_values or []

    if question.required and not selected:
        return "Please select at least one option"
    if rules.min_selections and len(selected) < rules.min_selections:
        return f"Please select at least {rules.min_selections} options"
    if rules.max_selections and len(selected) > rules.max_selections:
        return f"Please select no more than {rules.max_selections} options"

    valid_values = [option.value for option in question.options or []]
    if any(value not in valid_values for value in selected):
        return "One or more invalid selections detected"

    return None


_FIELD_VALIDATORS: Dict[str, Callable[[Any, Any, ValidationRules], Optional[str]]] = {
    "multiple_choice": _validate_multiple_choice,
    "slider": _validate_slider,
    "text": _validate_text,
    "textarea": _validate_text,
    "email": _validate_email,
    "select": _validate_choice,
    "radio": _validate_choice,
    "checkbox": _validate_checkbox,
}


def is_valid_email_format(email: str) -> bool:
    if not EMAIL_FORMAT.fullmatch(email):
        return False
    if len(email) > 254:
        return False
    if ".." in email:
        return False
    if email.startswith(".") or email.endswith("."):
        return False
    if "@." in email or ".@" in email:
        return False

    parts = email.split("@")
    if len(parts) != 2:
        return False
    local_part, domain = parts
    if len(local_part) > 64:
        return False
    if len(domain) < 4:
        return False
    return True


# --- Whole-form validation ---

def validate_form_response(fields: Iterable[Any], responses: Mapping[Any, Any]) -> FormValidationResult:
    """Validates every field; errors are keyed by the field's id (or name)."""
    errors: Dict[str, str] = {}
    for field in fields:
        key = _field_key(field)
        error = validate_field(field, responses.get(key))
        if error:
            errors[str(key)] = error
    return FormValidationResult(is_valid=not errors, errors=errors, error_count=len(errors))


def validate_lead_submission(lead_config: LeadFormConfig, values: Mapping[str, Any]) -> FormValidationResult:
    """
    Validates a flat {field name: value} lead-capture submission against the
    lead form's declared fields.
    """
    responses = {}
    for field in lead_config.fields:
        if field.name in values:
            responses[field.name] = build_response(field, values[field.name])
    result = validate_form_response(lead_config.fields, responses)
    if not result.is_valid:
        logger.info(f"Lead submission rejected with {result.error_count} error(s): {sorted(result.errors)}")
    return result


def _field_key(field: Any) -> Any:
    key = getattr(field, "id", None)
    return key if key is not None else getattr(field, "name", None)
