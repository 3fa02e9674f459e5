# quiz_engine/engine.py
# QuizEngine: ties a validated configuration, the catalog, the scorer and the
# result store together and drives sessions from start to result.

import logging
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .catalog import load_catalog_from_file
from .config_validator import load_config_from_file
from .field_validator import FormValidationResult, validate_field, validate_lead_submission
from .models import (
    CamelModel,
    CatalogItem,
    ConfigurationError,
    FormConfig,
    FormResult,
    QuestionId,
    SavedResult,
    ScoredItem,
    ScoreTrace,
    SessionStateError,
    utc_now,
)
from .responses import build_response
from .scorer import DEFAULT_NOISE, DEFAULT_TIE_WINDOW, ResultScorer
from .session import FormSession
from .storage import DEFAULT_RESULT_TTL, InMemoryResultStore, ResultStore
from .timers import DebouncedValidator, Scheduler

logger = logging.getLogger(__name__)


class QuizOutcome(CamelModel):
    """What the UI renders once a quiz is over, freshly scored or restored."""
    item: CatalogItem
    tags: List[str]
    timestamp: datetime
    raw_score: Optional[int] = None
    restored: bool = False
    result: Optional[FormResult] = None
    trace: Optional[ScoreTrace] = None

    def payload(self) -> Dict[str, Any]:
        """Record handed to the persistence collaborator."""
        return {
            "item": self.item.model_dump(by_alias=True),
            "tags": list(self.tags),
            "timestamp": self.timestamp.isoformat(),
            "ctaClicked": False,
        }


class QuizEngine:
    """
    Owns one quiz: the validated configuration, the catalog, an injected
    result store and an injected random source.

    Only one session is live at a time. `restart()` closes it so that any
    pending auto-advance is dropped.
    """

    def __init__(
        self,
        config: FormConfig,
        catalog: Sequence[CatalogItem],
        *,
        store: Optional[ResultStore] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[Scheduler] = None,
        auto_advance_delay: float = 0.5,
        validation_debounce: float = 0.3,
        score_noise: float = DEFAULT_NOISE,
        tie_window: float = DEFAULT_TIE_WINDOW,
        result_ttl: timedelta = DEFAULT_RESULT_TTL,
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_result: Optional[Callable[[QuizOutcome], None]] = None,
    ):
        if not catalog:
            raise ConfigurationError("Catalog must contain at least one item")
        self.config = config
        self.catalog = list(catalog)
        self.store = store or InMemoryResultStore(ttl=result_ttl, clock=clock)
        self.scorer = ResultScorer(rng=rng, noise=score_noise, tie_window=tie_window)
        self.validation_debounce = validation_debounce

        self._clock = clock
        self._scheduler = scheduler
        self._auto_advance_delay = auto_advance_delay
        self._on_progress = on_progress
        self._on_result = on_result

        self.session: Optional[FormSession] = None
        self.outcome: Optional[QuizOutcome] = None

    @classmethod
    def from_files(cls, config_path: Union[str, Path], catalog_path: Union[str, Path], **kwargs) -> "QuizEngine":
        config = load_config_from_file(config_path)
        catalog = load_catalog_from_file(catalog_path)
        return cls(config, catalog, **kwargs)

    # --- Lifecycle ---

    def start(self) -> Optional[QuizOutcome]:
        """
        Restores a saved result if the store still holds one, otherwise opens
        a fresh session.

        Returns:
            The restored outcome, or None when a new session was started
            (available as `self.session`).
        """
        saved = self.store.load()
        if saved is not None:
            return self.restore(saved)
        self._new_session()
        return None

    def restart(self) -> FormSession:
        self._close_session()
        self.store.clear()
        self.outcome = None
        logger.info("Quiz restarted")
        return self._new_session()

    def restore(self, saved: SavedResult) -> QuizOutcome:
        """Shows a previously computed item verbatim; no scoring takes place."""
        self._close_session()
        self.outcome = QuizOutcome(
            item=saved.item,
            tags=list(saved.tags),
            timestamp=saved.timestamp,
            restored=True,
        )
        logger.info(f"Restored saved result: {saved.item.name}")
        return self.outcome

    def mark_cta_clicked(self):
        self.store.mark_cta_clicked()
        logger.info("CTA clicked; saved result will not be restored")

    # --- Queries ---

    def get_questions(self) -> List[Any]:
        return list(self.config.questions)

    def score_tags(self, tags: Sequence[str]) -> ScoredItem:
        return self.scorer.score(tags, self.catalog)

    def validate_field(self, question_id: QuestionId, raw_input: Any) -> Optional[str]:
        question = self.config.question_by_id(question_id)
        if question is None:
            raise SessionStateError(f"Unknown question id: {question_id}")
        return validate_field(question, build_response(question, raw_input))

    def debounced_field_validator(self) -> DebouncedValidator:
        """Wraps validate_field so rapid input only validates once it settles."""
        return DebouncedValidator(self.validate_field, delay=self.validation_debounce)

    def validate_lead(self, values: Mapping[str, Any]) -> FormValidationResult:
        if self.config.lead_form_config is None:
            raise ConfigurationError("Lead form is not configured")
        return validate_lead_submission(self.config.lead_form_config, values)

    # --- Internals ---

    def _new_session(self) -> FormSession:
        self._close_session()
        self.session = FormSession(
            self.config,
            clock=self._clock,
            scheduler=self._scheduler,
            auto_advance_delay=self._auto_advance_delay,
            on_progress=self._on_progress,
            on_complete=self._handle_complete,
        )
        logger.info(f"Started session {self.session.session_id} ({len(self.config.questions)} questions)")
        return self.session

    def _close_session(self):
        if self.session is not None and not self.session.is_closed:
            self.session.close()

    def _handle_complete(self, result: FormResult):
        trace = self.scorer.score_with_trace(result.tags, self.catalog)
        selected = trace.selected
        outcome = QuizOutcome(
            item=selected.item,
            tags=list(result.tags),
            timestamp=result.completed_at,
            raw_score=selected.raw_score,
            result=result,
            trace=trace,
        )
        self.store.save(SavedResult(item=outcome.item, tags=outcome.tags, timestamp=outcome.timestamp))
        self.outcome = outcome
        logger.info(f"Quiz result: {selected.item.name} (raw score {selected.raw_score})")
        if self._on_result:
            self._on_result(outcome)
