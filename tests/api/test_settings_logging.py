import json
import logging

from plant_quiz.logging_config import CustomJsonFormatter, setup_logging
from plant_quiz.settings import QuizSettings, get_settings


def test_settings_defaults_point_at_packaged_assets(monkeypatch):
    for name in ("PLANT_QUIZ_SCORE_NOISE", "PLANT_QUIZ_CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    settings = QuizSettings()
    assert settings.config_path.name == "plant_quiz.yml"
    assert settings.config_path.is_file()
    assert settings.catalog_path.is_file()
    assert settings.auto_advance_delay == 0.5
    assert settings.validation_debounce == 0.3
    assert settings.result_ttl_days == 7
    assert settings.tie_window == 0.15


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("PLANT_QUIZ_SCORE_NOISE", "0.2")
    monkeypatch.setenv("PLANT_QUIZ_LOG_LEVEL", "DEBUG")
    settings = QuizSettings()
    assert settings.score_noise == 0.2
    assert settings.log_level == "DEBUG"


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_json_formatter_adds_context_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("quiz_engine.session", logging.WARNING, "/app/session.py", 42,
                               "question failed validation", None, None)
    payload = json.loads(formatter.format(record))
    assert payload["level"] == "WARNING"
    assert payload["service"] == "plant-quiz"
    assert payload["lineno"] == 42
    assert payload["message"] == "question failed validation"
    assert payload["timestamp"].endswith("+00:00")


def test_setup_logging_installs_one_json_handler():
    root = logging.getLogger()
    original_level = root.level
    try:
        setup_logging("DEBUG")
        setup_logging("INFO")
        json_handlers = [h for h in root.handlers if isinstance(h.formatter, CustomJsonFormatter)]
        assert len(json_handlers) == 1
        assert root.level == logging.INFO
    finally:
        root.setLevel(original_level)
