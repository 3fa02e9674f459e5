# quiz_engine/config_validator.py
# Validates raw form configuration documents and turns them into FormConfig objects.

import logging
import re
from numbers import Number
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .models import (
    CALCULATION_METHODS,
    DISPLAY_TYPES,
    LEAD_FIELD_TYPES,
    ConfigurationError,
    FormConfig,
)

logger = logging.getLogger(__name__)

REQUIRED_TOP_LEVEL_FIELDS = ["formMetadata", "questions", "resultConfig"]
ALLOWED_TOP_LEVEL_FIELDS = ["formMetadata", "styling", "questions", "resultConfig", "leadFormConfig"]
MAX_QUESTIONS = 50
MAX_QUESTION_TEXT = 500
MAX_TITLE_LENGTH = 100
VERSION_PATTERN = re.compile(r"\d+\.\d+(\.\d+)?")


def validate_config(raw: Any) -> FormConfig:
    """
    Validates a raw configuration document and returns the typed FormConfig.

    Checks run in a fixed order and stop at the first failure:
    top-level shape, metadata, questions, resultConfig, then leadFormConfig.

    Args:
        raw: The parsed JSON/YAML document.

    Returns:
        The validated FormConfig.

    Raises:
        ConfigurationError: naming the offending field path.
    """
    try:
        _validate_basic_structure(raw)
        _validate_metadata(raw["formMetadata"])
        _validate_questions(raw["questions"])
        _validate_result_config(raw["resultConfig"])
        if raw.get("leadFormConfig"):
            _validate_lead_form_config(raw["leadFormConfig"])

        try:
            config = FormConfig.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            path = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Schema validation failed at {path}: {first['msg']}",
                {"path": path, "errors": e.errors(include_url=False, include_context=False)},
            ) from e
    except ConfigurationError as e:
        logger.error(f"Form config validation failed: {e.message}")
        logger.debug(f"Configuration debug info: {_debug_summary(raw)}")
        raise

    logger.info(
        f"Form config validated successfully: {len(config.questions)} questions, "
        f"version {config.form_metadata.version}"
    )
    logger.debug(f"Configuration summary: {describe_config(config)}")
    return config


def load_config_from_file(file_path: Union[str, Path]) -> FormConfig:
    """
    Loads a configuration document from a YAML or JSON file and validates it.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"File not found: {file_path}", {"path": str(file_path)})
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing configuration file {file_path}: {e}", {"path": str(file_path)})

    if data is None:
        raise ConfigurationError(f"Configuration file is empty or invalid: {file_path}", {"path": str(file_path)})

    return validate_config(data)


# --- Helpers ---

def _is_missing(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, str) and value == "")


def _missing_fields(obj: Dict[str, Any], fields: List[str]) -> List[str]:
    return [field for field in fields if _is_missing(obj.get(field))]


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _fail(message: str, path: str, **details: Any) -> None:
    raise ConfigurationError(message, {"path": path, **details})


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


# --- Top level & metadata ---

def _validate_basic_structure(config: Any) -> None:
    if not isinstance(config, dict):
        _fail("Configuration must be a valid JSON object", "$", expected="object", actual=_type_name(config))

    missing = _missing_fields(config, REQUIRED_TOP_LEVEL_FIELDS)
    if missing:
        _fail(f"Missing required top-level fields: {', '.join(missing)}", "$", missing=missing)

    unexpected = [field for field in config if field not in ALLOWED_TOP_LEVEL_FIELDS]
    if unexpected:
        logger.warning(f"Unexpected fields in config: {', '.join(unexpected)}")


def _validate_metadata(metadata: Any) -> None:
    if not isinstance(metadata, dict):
        _fail("formMetadata must be an object", "formMetadata", expected="object", actual=_type_name(metadata))

    missing = _missing_fields(metadata, ["title", "description", "version"])
    if missing:
        _fail(f"Missing required metadata fields: {', '.join(missing)}", "formMetadata", missing=missing)

    version = metadata["version"]
    if not isinstance(version, str) or not VERSION_PATTERN.fullmatch(version):
        _fail(
            'Version must be in semantic versioning format (e.g., "1.0" or "1.0.0")',
            "formMetadata.version",
            expected="MAJOR.MINOR[.PATCH]",
            actual=version,
        )

    title = metadata["title"]
    if not isinstance(title, str) or not 1 <= len(title) <= MAX_TITLE_LENGTH:
        _fail(
            f"Title must be between 1 and {MAX_TITLE_LENGTH} characters",
            "formMetadata.title",
            expected=f"string of 1-{MAX_TITLE_LENGTH} characters",
            actual=len(title) if isinstance(title, str) else _type_name(title),
        )


# --- Questions ---

def _validate_questions(questions: Any) -> None:
    if not isinstance(questions, list):
        _fail("questions must be an array", "questions", expected="array", actual=_type_name(questions))
    if len(questions) == 0:
        _fail("At least one question is required", "questions", expected=">= 1", actual=0)
    if len(questions) > MAX_QUESTIONS:
        _fail(f"Maximum {MAX_QUESTIONS} questions allowed", "questions", expected=f"<= {MAX_QUESTIONS}", actual=len(questions))

    seen_ids = set()
    for index, question in enumerate(questions):
        number = index + 1
        path = f"questions[{index}]"
        try:
            _validate_basic_question(question, path)

            question_id = question["id"]
            if (type(question_id), question_id) in seen_ids:
                _fail(f"Duplicate question ID: {question_id}", f"{path}.id", actual=question_id)
            seen_ids.add((type(question_id), question_id))

            question_type = question["type"]
            validator = _QUESTION_VALIDATORS.get(question_type) if isinstance(question_type, str) else None
            if validator is None:
                _fail(
                    f"Unknown question type: {question_type}",
                    f"{path}.type",
                    expected=sorted(_QUESTION_VALIDATORS),
                    actual=question_type,
                )
            validator(question, path)
        except ConfigurationError as e:
            shown_id = question.get("id") if isinstance(question, dict) else None
            if _is_missing(shown_id):
                shown_id = "undefined"
            raise ConfigurationError(
                f"Question {number} (ID: {shown_id}): {e.message}",
                {**e.details, "question": number},
            ) from e


def _validate_basic_question(question: Any, path: str) -> None:
    if not isinstance(question, dict):
        _fail("Question must be an object", path, expected="object", actual=_type_name(question))

    missing = _missing_fields(question, ["id", "text", "type"])
    if missing:
        _fail(f"Missing required fields: {', '.join(missing)}", path, missing=missing)

    if not (_is_number(question["id"]) or isinstance(question["id"], str)):
        _fail("Question ID must be a number or string", f"{path}.id", expected="number or string", actual=_type_name(question["id"]))
    if isinstance(question["id"], float) and not question["id"].is_integer():
        _fail("Question ID must be a whole number or string", f"{path}.id", expected="integer or string", actual=question["id"])

    text = question["text"]
    if not isinstance(text, str) or not text.strip():
        _fail("Question text must be a non-empty string", f"{path}.text", expected="non-empty string", actual=_type_name(text))
    if len(text) > MAX_QUESTION_TEXT:
        _fail(
            f"Question text must be less than {MAX_QUESTION_TEXT} characters",
            f"{path}.text",
            expected=f"<= {MAX_QUESTION_TEXT}",
            actual=len(text),
        )

    if question.get("validation") is not None and not isinstance(question["validation"], dict):
        _fail("validation must be an object", f"{path}.validation", expected="object", actual=_type_name(question["validation"]))


def _validate_multiple_choice_question(question: Dict[str, Any], path: str) -> None:
    options = question.get("options")
    if not isinstance(options, list):
        _fail("Multiple choice questions must have an options array", f"{path}.options", expected="array", actual=_type_name(options))
    if len(options) < 2:
        _fail("Multiple choice questions must have at least 2 options", f"{path}.options", expected=">= 2", actual=len(options))
    if len(options) > 10:
        _fail("Multiple choice questions cannot have more than 10 options", f"{path}.options", expected="<= 10", actual=len(options))

    option_ids = set()
    for index, option in enumerate(options):
        number = index + 1
        option_path = f"{path}.options[{index}]"
        if not isinstance(option, dict):
            _fail(f"Option {number} must be an object", option_path, expected="object", actual=_type_name(option))

        missing = _missing_fields(option, ["id", "text", "tags"])
        if missing:
            _fail(f"Option {number} missing fields: {', '.join(missing)}", option_path, missing=missing)

        if not (_is_number(option["id"]) or isinstance(option["id"], str)):
            _fail(f"Option {number}: id must be a number or string", f"{option_path}.id", expected="number or string", actual=_type_name(option["id"]))

        if (type(option["id"]), option["id"]) in option_ids:
            _fail(f"Duplicate option ID: {option['id']}", f"{option_path}.id", actual=option["id"])
        option_ids.add((type(option["id"]), option["id"]))

        tags = option["tags"]
        if not isinstance(tags, list):
            _fail(f"Option {number}: tags must be an array", f"{option_path}.tags", expected="array", actual=_type_name(tags))
        if len(tags) == 0:
            _fail(f"Option {number}: at least one tag is required", f"{option_path}.tags", expected=">= 1", actual=0)
        if not all(isinstance(tag, str) for tag in tags):
            _fail(f"Option {number}: tags must be strings", f"{option_path}.tags", expected="array of strings")

        weight = option.get("weight")
        if weight is not None and (not _is_number(weight) or weight < 0):
            _fail(f"Option {number}: weight must be a non-negative number", f"{option_path}.weight", expected=">= 0", actual=weight)


def _validate_slider_question(question: Dict[str, Any], path: str) -> None:
    slider = question.get("sliderConfig")
    if not isinstance(slider, dict):
        _fail("Slider questions must have sliderConfig", f"{path}.sliderConfig", expected="object", actual=_type_name(slider))

    missing = _missing_fields(slider, ["labels", "tags"])
    if missing:
        _fail(f"sliderConfig missing fields: {', '.join(missing)}", f"{path}.sliderConfig", missing=missing)

    labels = slider["labels"]
    if not isinstance(labels, list):
        _fail("sliderConfig.labels must be an array", f"{path}.sliderConfig.labels", expected="array", actual=_type_name(labels))
    if not 2 <= len(labels) <= 7:
        _fail("Slider must have between 2 and 7 labels", f"{path}.sliderConfig.labels", expected="2-7", actual=len(labels))

    tags = slider["tags"]
    if not isinstance(tags, list):
        _fail("sliderConfig.tags must be an array", f"{path}.sliderConfig.tags", expected="array", actual=_type_name(tags))
    if len(tags) != len(labels):
        _fail(
            "sliderConfig.tags array must have same length as labels array",
            f"{path}.sliderConfig.tags",
            expected=len(labels),
            actual=len(tags),
        )
    for index, tag_set in enumerate(tags):
        if not isinstance(tag_set, list):
            _fail(f"sliderConfig.tags[{index}] must be an array", f"{path}.sliderConfig.tags[{index}]", expected="array", actual=_type_name(tag_set))

    weights = slider.get("weights")
    if weights is not None and (not isinstance(weights, list) or not all(_is_number(w) for w in weights)):
        _fail("sliderConfig.weights must be an array of numbers", f"{path}.sliderConfig.weights", expected="array of numbers")

    rules = question.get("validation")
    if rules:
        low, high = rules.get("min"), rules.get("max")
        if low is not None and (not _is_number(low) or low < 0):
            _fail("validation.min must be a non-negative number", f"{path}.validation.min", expected=">= 0", actual=low)
        if high is not None and (not _is_number(high) or high >= len(labels)):
            _fail(
                f"validation.max must be a number less than {len(labels)}",
                f"{path}.validation.max",
                expected=f"< {len(labels)}",
                actual=high,
            )
        if low is not None and high is not None and low >= high:
            _fail("validation.min must be less than validation.max", f"{path}.validation", expected="min < max", actual=[low, high])


def _validate_text_question(question: Dict[str, Any], path: str) -> None:
    rules = question.get("validation")
    if not rules:
        return
    _validate_length_rules(rules, f"{path}.validation", "validation")

    min_length, max_length = rules.get("minLength"), rules.get("maxLength")
    if min_length is not None and max_length is not None and min_length >= max_length:
        _fail(
            "validation.minLength must be less than validation.maxLength",
            f"{path}.validation",
            expected="minLength < maxLength",
            actual=[min_length, max_length],
        )

    pattern = rules.get("pattern")
    if pattern is not None and not isinstance(pattern, str):
        _fail("validation.pattern must be a string (regex pattern)", f"{path}.validation.pattern", expected="string", actual=_type_name(pattern))


def _validate_email_question(question: Dict[str, Any], path: str) -> None:
    rules = question.get("validation")
    if not rules:
        return
    _validate_length_rules(rules, f"{path}.validation", "validation")
    for key in ("allowedDomains", "blockedDomains"):
        domains = rules.get(key)
        if domains is not None and (not isinstance(domains, list) or not all(isinstance(d, str) for d in domains)):
            _fail(f"validation.{key} must be an array of strings", f"{path}.validation.{key}", expected="array of strings")


def _validate_option_list_question(question: Dict[str, Any], path: str) -> None:
    _validate_value_options(question.get("options"), f"{path}.options", f"{question['type']} questions")


def _validate_length_rules(rules: Dict[str, Any], path: str, prefix: str) -> None:
    min_length, max_length = rules.get("minLength"), rules.get("maxLength")
    if min_length is not None and (not _is_number(min_length) or min_length < 0):
        _fail(f"{prefix}.minLength must be a non-negative number", f"{path}.minLength", expected=">= 0", actual=min_length)
    if max_length is not None and (not _is_number(max_length) or max_length < 1):
        _fail(f"{prefix}.maxLength must be a positive number", f"{path}.maxLength", expected=">= 1", actual=max_length)


def _validate_value_options(options: Any, path: str, owner: str) -> None:
    if not isinstance(options, list) or len(options) == 0:
        _fail(f"{owner} must have a non-empty options array", path, expected="non-empty array", actual=_type_name(options))
    for index, option in enumerate(options):
        if not isinstance(option, dict) or "value" not in option or _is_missing(option.get("text")):
            _fail(f"option {index + 1}: must have value and text", f"{path}[{index}]", expected="{value, text}")


_QUESTION_VALIDATORS = {
    "multiple_choice": _validate_multiple_choice_question,
    "slider": _validate_slider_question,
    "text": _validate_text_question,
    "email": _validate_email_question,
    "select": _validate_option_list_question,
    "radio": _validate_option_list_question,
    "checkbox": _validate_option_list_question,
}


# --- Result & lead form ---

def _validate_result_config(result_config: Any) -> None:
    if not isinstance(result_config, dict):
        _fail("resultConfig must be an object", "resultConfig", expected="object", actual=_type_name(result_config))

    missing = _missing_fields(result_config, ["calculationMethod", "displayType", "ctaText", "restartText"])
    if missing:
        _fail(f"resultConfig missing fields: {', '.join(missing)}", "resultConfig", missing=missing)

    if result_config["calculationMethod"] not in CALCULATION_METHODS:
        _fail(
            f"calculationMethod must be one of: {', '.join(CALCULATION_METHODS)}",
            "resultConfig.calculationMethod",
            expected=list(CALCULATION_METHODS),
            actual=result_config["calculationMethod"],
        )

    if result_config["displayType"] not in DISPLAY_TYPES:
        _fail(
            f"displayType must be one of: {', '.join(DISPLAY_TYPES)}",
            "resultConfig.displayType",
            expected=list(DISPLAY_TYPES),
            actual=result_config["displayType"],
        )

    factor = result_config.get("randomizationFactor")
    if factor is not None and (not _is_number(factor) or not 0 <= factor <= 1):
        _fail(
            "randomizationFactor must be a number between 0 and 1",
            "resultConfig.randomizationFactor",
            expected="[0, 1]",
            actual=factor,
        )


def _validate_lead_form_config(lead_form: Any) -> None:
    if not isinstance(lead_form, dict):
        _fail("leadFormConfig must be an object", "leadFormConfig", expected="object", actual=_type_name(lead_form))

    missing = _missing_fields(lead_form, ["title", "fields", "submitText"])
    if missing:
        _fail(f"leadFormConfig missing fields: {', '.join(missing)}", "leadFormConfig", missing=missing)

    fields = lead_form["fields"]
    if not isinstance(fields, list):
        _fail("leadFormConfig.fields must be an array", "leadFormConfig.fields", expected="array", actual=_type_name(fields))

    for index, field in enumerate(fields):
        _validate_lead_form_field(field, index)


def _validate_lead_form_field(field: Any, index: int) -> None:
    number = index + 1
    path = f"leadFormConfig.fields[{index}]"
    if not isinstance(field, dict):
        _fail(f"Lead form field {number} must be an object", path, expected="object", actual=_type_name(field))

    missing = _missing_fields(field, ["name", "type", "label"])
    if missing:
        _fail(f"Lead form field {number} missing: {', '.join(missing)}", path, missing=missing)

    if field["type"] not in LEAD_FIELD_TYPES:
        _fail(
            f"Field {number}: type must be one of {', '.join(LEAD_FIELD_TYPES)}",
            f"{path}.type",
            expected=list(LEAD_FIELD_TYPES),
            actual=field["type"],
        )

    if field["type"] in ("select", "radio"):
        try:
            _validate_value_options(field.get("options"), f"{path}.options", f"{field['type']} fields")
        except ConfigurationError as e:
            raise ConfigurationError(f"Field {number}: {e.message}", e.details) from e

    rules = field.get("validation")
    if rules is not None:
        if not isinstance(rules, dict):
            _fail(f"Field {number}: validation must be an object", f"{path}.validation", expected="object", actual=_type_name(rules))
        if rules.get("pattern") is not None and not isinstance(rules["pattern"], str):
            _fail(f"Field {number}: validation.pattern must be a string", f"{path}.validation.pattern", expected="string")
        _validate_length_rules(rules, f"{path}.validation", f"Field {number}: validation")


# --- Debugging helpers ---

def get_config_property(config: Any, path: str, default: Any = None) -> Any:
    """
    Safely reads a dotted path (e.g. "resultConfig.ctaText") from a raw document.
    """
    current = config
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            logger.warning(f"Config property not found: {path}")
            return default
    return current


def describe_config(config: FormConfig) -> Dict[str, Any]:
    return {
        "title": config.form_metadata.title,
        "version": config.form_metadata.version,
        "questions": len(config.questions),
        "question_types": [(q.id, q.type) for q in config.questions],
        "has_lead_form": config.lead_form_config is not None,
    }


def _debug_summary(raw: Any) -> Dict[str, Optional[Any]]:
    if not isinstance(raw, dict):
        return {"type": _type_name(raw)}
    questions = raw.get("questions")
    return {
        "keys": list(raw.keys()),
        "questions": len(questions) if isinstance(questions, list) else 0,
        "version": get_config_property(raw, "formMetadata.version", "undefined"),
    }
