# plant_quiz/routers/quiz.py
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from plant_quiz.schemas.quiz import (
    ConfigValidationResult,
    FieldValidationRequest,
    FieldValidationResult,
    LeadAccepted,
    ScoreRequest,
    ScoreResult,
)
from plant_quiz.settings import get_settings
from quiz_engine.config_validator import describe_config, validate_config
from quiz_engine.engine import QuizEngine
from quiz_engine.models import ConfigurationError, SessionStateError

router = APIRouter()
logger = logging.getLogger(__name__)


@lru_cache()
def get_quiz_engine() -> QuizEngine:
    """Engine built from the configured documents; loaded once per process."""
    settings = get_settings()
    return QuizEngine.from_files(
        settings.config_path,
        settings.catalog_path,
        auto_advance_delay=settings.auto_advance_delay,
        validation_debounce=settings.validation_debounce,
        score_noise=settings.score_noise,
        tie_window=settings.tie_window,
        result_ttl=timedelta(days=settings.result_ttl_days),
    )


def _configuration_error(e: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"message": e.message, "details": e.details})


@router.get("/quiz/config")
async def get_config(engine: QuizEngine = Depends(get_quiz_engine)) -> Dict[str, Any]:
    """Returns the validated configuration document the quiz runs on."""
    logger.info(f"Serving quiz config version {engine.config.form_metadata.version}")
    return engine.config.model_dump(by_alias=True, exclude_none=True)


@router.post("/quiz/config/validate", response_model=ConfigValidationResult)
async def validate_config_document(document: Any = Body(...)):
    """
    Validates a posted configuration document without loading it.

    422 carries the first failure's message and details (offending path,
    expected and actual values).
    """
    try:
        config = validate_config(document)
    except ConfigurationError as e:
        logger.warning(f"Posted configuration rejected: {e.message}")
        raise _configuration_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error validating configuration: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return ConfigValidationResult(valid=True, summary=describe_config(config))


@router.post("/quiz/validate-field", response_model=FieldValidationResult)
async def validate_field(request: FieldValidationRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        error = engine.validate_field(request.question_id, request.response)
    except SessionStateError as e:
        logger.warning(f"Field validation for unknown question: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error during field validation: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return FieldValidationResult(question_id=request.question_id, error=error)


@router.post("/quiz/result", response_model=ScoreResult)
async def score_result(request: ScoreRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    """Scores a completed tag list against the catalog."""
    try:
        scored = engine.score_tags(request.tags)
    except Exception as e:
        logger.exception(f"Unexpected error during scoring: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    logger.info(f"Scored {len(request.tags)} tags: {scored.item.name} (raw score {scored.raw_score})")
    return ScoreResult(
        item=scored.item,
        raw_score=scored.raw_score,
        normalized_score=scored.normalized_score,
        final_score=scored.final_score,
    )


@router.post("/quiz/lead", response_model=LeadAccepted)
async def submit_lead(values: Dict[str, Any] = Body(...), engine: QuizEngine = Depends(get_quiz_engine)):
    """
    Validates a lead-capture submission ({field name: value}).

    Nothing is stored; delivery of accepted leads belongs to the caller.
    """
    try:
        result = engine.validate_lead(values)
    except ConfigurationError as e:
        logger.error(f"Lead submission against missing lead form: {e.message}")
        raise _configuration_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error during lead validation: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    if not result.is_valid:
        raise HTTPException(status_code=422, detail={"errors": result.errors})

    logger.info("Lead submission accepted")
    return LeadAccepted()
