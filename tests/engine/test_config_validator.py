import logging
from pathlib import Path

import pytest

from quiz_engine.config_validator import (
    describe_config,
    get_config_property,
    load_config_from_file,
    validate_config,
)
from quiz_engine.models import ConfigurationError, FormConfig

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "quiz_engine" / "assets" / "plant_quiz.yml"


def _mc_question(question_id, option_ids=("a", "b")):
    return {
        "id": question_id,
        "type": "multiple_choice",
        "text": f"Question {question_id}?",
        "options": [{"id": oid, "text": f"Option {oid}", "tags": [f"tag_{oid}"]} for oid in option_ids],
    }


# --- Valid documents ---

def test_minimal_config_validates(minimal_config):
    config = validate_config(minimal_config)
    assert isinstance(config, FormConfig)
    assert config.form_metadata.version == "1.0"
    assert config.questions[0].type == "multiple_choice"
    assert config.questions[0].options[0].weight == 1.0
    assert config.result_config.display_type == "polaroid"


def test_all_question_variants_validate(make_config, slider_question, text_question):
    document = make_config(
        _mc_question(1),
        slider_question,
        text_question,
        {"id": "mail", "type": "email", "text": "Email?", "validation": {"blockedDomains": ["spam.com"]}},
        {"id": "pot", "type": "select", "text": "Pot?", "options": [{"value": "clay", "text": "Clay"}]},
        {"id": "light", "type": "radio", "text": "Light?", "options": [{"value": 1, "text": "Low"}]},
        {"id": "pets", "type": "checkbox", "text": "Pets?", "options": [{"value": "cat", "text": "Cat"}]},
    )
    config = validate_config(document)
    assert [q.type for q in config.questions] == [
        "multiple_choice", "slider", "text", "email", "select", "radio", "checkbox",
    ]
    assert config.questions[1].slider_config.tags[2] == ["confident"]
    assert config.questions[2].validation.min_length == 5


def test_unexpected_top_level_field_only_warns(minimal_config, caplog):
    minimal_config["analytics"] = {"enabled": True}
    with caplog.at_level(logging.WARNING, logger="quiz_engine.config_validator"):
        config = validate_config(minimal_config)
    assert config is not None
    assert "Unexpected fields in config: analytics" in caplog.text


def test_packaged_default_config_is_valid():
    config = load_config_from_file(DEFAULT_CONFIG_PATH)
    assert len(config.questions) == 4
    assert config.form_metadata.version == "1.0.0"
    assert config.questions[2].type == "slider"
    assert [f.name for f in config.lead_form_config.fields] == ["name", "email", "experience"]


# --- Top level & metadata ---

def test_missing_result_config_is_reported_before_questions(minimal_config):
    del minimal_config["resultConfig"]
    minimal_config["questions"] = [{"id": 1, "type": "nonsense", "text": "Broken?"}]

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(minimal_config)

    assert "resultConfig" in exc_info.value.message
    assert exc_info.value.message == "Missing required top-level fields: resultConfig"
    assert exc_info.value.details["missing"] == ["resultConfig"]


def test_non_object_document_is_rejected():
    with pytest.raises(ConfigurationError, match="Configuration must be a valid JSON object"):
        validate_config(["not", "a", "dict"])


def test_invalid_version_names_the_path(minimal_config):
    minimal_config["formMetadata"]["version"] = "v1"
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(minimal_config)
    assert "semantic versioning" in exc_info.value.message
    assert exc_info.value.details["path"] == "formMetadata.version"


@pytest.mark.parametrize("version", ["1.0", "2.10.3"])
def test_semantic_versions_are_accepted(minimal_config, version):
    minimal_config["formMetadata"]["version"] = version
    assert validate_config(minimal_config).form_metadata.version == version


def test_title_longer_than_100_characters_is_rejected(minimal_config):
    minimal_config["formMetadata"]["title"] = "x" * 101
    with pytest.raises(ConfigurationError, match="Title must be between 1 and 100 characters"):
        validate_config(minimal_config)


# --- Questions ---

def test_empty_question_list_is_rejected(make_config):
    with pytest.raises(ConfigurationError, match="At least one question is required"):
        validate_config(make_config())


def test_more_than_50_questions_is_rejected(make_config):
    document = make_config(*[_mc_question(i) for i in range(51)])
    with pytest.raises(ConfigurationError, match="Maximum 50 questions allowed"):
        validate_config(document)


def test_duplicate_question_id_is_rejected(make_config):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(_mc_question(1), _mc_question(2), _mc_question(1)))
    assert exc_info.value.message == "Question 3 (ID: 1): Duplicate question ID: 1"
    assert exc_info.value.details["question"] == 3


def test_numeric_and_string_ids_do_not_collide(make_config):
    config = validate_config(make_config(_mc_question(1), _mc_question("1")))
    assert [q.id for q in config.questions] == [1, "1"]


def test_duplicate_option_id_is_rejected(make_config):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(_mc_question(1, option_ids=("a", "a"))))
    assert exc_info.value.message == "Question 1 (ID: 1): Duplicate option ID: a"


def test_unknown_question_type_fails_immediately(make_config):
    question = {"id": 7, "type": "dropdown", "text": "Pick?"}
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(question))
    assert exc_info.value.message == "Question 1 (ID: 7): Unknown question type: dropdown"


def test_missing_question_id_is_shown_as_undefined(make_config):
    question = {"type": "text", "text": "Name?"}
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(question))
    assert exc_info.value.message == "Question 1 (ID: undefined): Missing required fields: id"


def test_boolean_question_id_is_rejected(make_config):
    question = {"id": True, "type": "text", "text": "Name?"}
    with pytest.raises(ConfigurationError, match="Question ID must be a number or string"):
        validate_config(make_config(question))


def test_question_text_over_500_characters_is_rejected(make_config):
    question = {"id": 1, "type": "text", "text": "q" * 501}
    with pytest.raises(ConfigurationError, match="Question text must be less than 500 characters"):
        validate_config(make_config(question))


def test_multiple_choice_needs_two_options(make_config):
    with pytest.raises(ConfigurationError, match="must have at least 2 options"):
        validate_config(make_config(_mc_question(1, option_ids=("a",))))


def test_option_without_tags_is_rejected(make_config):
    question = _mc_question(1)
    question["options"][1]["tags"] = []
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(question))
    assert "Option 2" in exc_info.value.message


def test_negative_option_weight_is_rejected(make_config):
    question = _mc_question(1)
    question["options"][0]["weight"] = -0.5
    with pytest.raises(ConfigurationError, match="weight must be a non-negative number"):
        validate_config(make_config(question))


def test_slider_tags_must_match_labels(make_config, slider_question):
    question = slider_question
    question["sliderConfig"]["tags"] = [[], ["passive"]]
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(question))
    assert "sliderConfig.tags array must have same length as labels array" in exc_info.value.message
    assert exc_info.value.details["expected"] == 3
    assert exc_info.value.details["actual"] == 2


def test_slider_max_must_be_below_label_count(make_config, slider_question):
    question = slider_question
    question["validation"] = {"min": 0, "max": 3}
    with pytest.raises(ConfigurationError, match="validation.max must be a number less than 3"):
        validate_config(make_config(question))


def test_slider_min_must_be_below_max(make_config, slider_question):
    question = slider_question
    question["validation"] = {"min": 2, "max": 1}
    with pytest.raises(ConfigurationError, match="validation.min must be less than validation.max"):
        validate_config(make_config(question))


def test_slider_label_count_is_bounded(make_config, slider_question):
    question = slider_question
    question["sliderConfig"] = {"labels": ["only"], "tags": [[]]}
    question.pop("validation")
    with pytest.raises(ConfigurationError, match="Slider must have between 2 and 7 labels"):
        validate_config(make_config(question))


def test_text_min_length_must_be_below_max_length(make_config, text_question):
    question = text_question
    question["validation"] = {"minLength": 20, "maxLength": 5}
    with pytest.raises(ConfigurationError, match="minLength must be less than validation.maxLength"):
        validate_config(make_config(question))


def test_select_question_requires_options(make_config):
    question = {"id": "pot", "type": "select", "text": "Pot?", "options": [{"text": "Clay"}]}
    with pytest.raises(ConfigurationError, match="must have value and text"):
        validate_config(make_config(question))


# --- resultConfig & leadFormConfig ---

def test_unknown_calculation_method_is_rejected(minimal_config):
    minimal_config["resultConfig"]["calculationMethod"] = "magic"
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(minimal_config)
    assert exc_info.value.message.startswith("calculationMethod must be one of: weighted_tags")
    assert exc_info.value.details["actual"] == "magic"


def test_unknown_display_type_is_rejected(minimal_config):
    minimal_config["resultConfig"]["displayType"] = "carousel"
    with pytest.raises(ConfigurationError, match="displayType must be one of"):
        validate_config(minimal_config)


def test_randomization_factor_out_of_range_is_rejected(minimal_config):
    minimal_config["resultConfig"]["randomizationFactor"] = 1.5
    with pytest.raises(ConfigurationError, match="randomizationFactor must be a number between 0 and 1"):
        validate_config(minimal_config)


def test_lead_form_select_field_requires_options(minimal_config):
    minimal_config["leadFormConfig"] = {
        "title": "Stay in touch",
        "submitText": "Send",
        "fields": [{"name": "experience", "type": "select", "label": "Experience"}],
    }
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(minimal_config)
    assert exc_info.value.message == "Field 1: select fields must have a non-empty options array"


def test_lead_form_field_type_is_checked(minimal_config):
    minimal_config["leadFormConfig"] = {
        "title": "Stay in touch",
        "submitText": "Send",
        "fields": [{"name": "age", "type": "number", "label": "Age"}],
    }
    with pytest.raises(ConfigurationError, match="Field 1: type must be one of"):
        validate_config(minimal_config)


# --- File loading ---

def test_load_config_from_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="File not found"):
        load_config_from_file(tmp_path / "missing.yml")


def test_load_config_with_yaml_syntax_error(tmp_path):
    path = tmp_path / "broken.yml"
    path.write_text("formMetadata: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Error parsing configuration file"):
        load_config_from_file(path)


def test_load_config_from_empty_file(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    with pytest.raises(ConfigurationError, match="empty or invalid"):
        load_config_from_file(path)


# --- Helpers ---

def test_get_config_property_reads_dotted_paths(minimal_config):
    assert get_config_property(minimal_config, "resultConfig.ctaText") == "Adopt"
    assert get_config_property(minimal_config, "questions.0.options.1.id") == "b"
    assert get_config_property(minimal_config, "resultConfig.missing", "fallback") == "fallback"


def test_describe_config_summarises_questions(minimal_config):
    summary = describe_config(validate_config(minimal_config))
    assert summary == {
        "title": "Plant Match",
        "version": "1.0",
        "questions": 1,
        "question_types": [(1, "multiple_choice")],
        "has_lead_form": False,
    }


def test_configuration_error_serialises_with_timestamp():
    error = ConfigurationError("Broken", {"path": "$"})
    payload = error.to_dict()
    assert payload["message"] == "Broken"
    assert payload["details"] == {"path": "$"}
    assert payload["timestamp"].endswith("+00:00")
    assert isinstance(error, ValueError)


def test_fractional_question_id_is_rejected_with_question_context(make_config):
    question = {"id": 1.5, "type": "text", "text": "Name?"}
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(make_config(question))
    assert exc_info.value.message == "Question 1 (ID: 1.5): Question ID must be a whole number or string"
    assert exc_info.value.details["path"] == "questions[0].id"
