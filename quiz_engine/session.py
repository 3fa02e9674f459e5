# quiz_engine/session.py
# FormSession: steps through the questions of a validated configuration,
# collects typed responses and produces the result bundle.

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .field_validator import validate_field
from .models import (
    CompletionTime,
    FormConfig,
    FormResult,
    QuestionId,
    Response,
    SessionStateError,
    SubmissionError,
    utc_now,
)
from .responses import build_response
from .timers import Scheduler, TimerToken, asyncio_scheduler

logger = logging.getLogger(__name__)

SUBMISSION_ERROR_KEY = "submission"
SUBMISSION_ERROR_MESSAGE = "An error occurred while submitting. Please try again."


class FormSession:
    """
    One pass through the question sequence.

    States are AtQuestion(i) for 0 <= i < N and Complete (index == N).
    Responses may be recorded for any question; only the current one is
    validated when advancing.

    Args:
        config: Validated form configuration.
        clock: Returns the current time; used for response timestamps.
        scheduler: `scheduler(delay, callback)` for the multiple-choice
                   auto-advance. Defaults to the running asyncio loop.
        auto_advance_delay: Seconds between a multiple-choice answer and the
                            automatic step forward.
        auto_advance: Set False to require an explicit advance() everywhere.
        on_progress: Called with (new_index, total) after each step forward.
        on_complete: Called with the FormResult before the session is marked
                     Complete. Any exception it raises is a submission error.
    """

    def __init__(
        self,
        config: FormConfig,
        *,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[Scheduler] = None,
        auto_advance_delay: float = 0.5,
        auto_advance: bool = True,
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_complete: Optional[Callable[[FormResult], None]] = None,
    ):
        self.config = config
        self.session_id = str(uuid.uuid4())
        self.current_step_index = 0
        self.responses: Dict[QuestionId, Response] = {}
        self.errors: Dict[Any, str] = {}
        self.result: Optional[FormResult] = None
        self.is_submitting = False
        self.last_submission_error: Optional[SubmissionError] = None

        self._clock = clock
        self._scheduler = scheduler or asyncio_scheduler
        self._auto_advance_delay = auto_advance_delay
        self._auto_advance = auto_advance
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._pending: Optional[TimerToken] = None
        self._closed = False

    # --- Derived state ---

    @property
    def total_questions(self) -> int:
        return len(self.config.questions)

    @property
    def is_complete(self) -> bool:
        return self.current_step_index >= self.total_questions

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def current_question(self):
        if self.is_complete:
            return None
        return self.config.questions[self.current_step_index]

    @property
    def progress(self) -> float:
        """Percentage through the sequence; 100 once Complete."""
        if self.is_complete:
            return 100.0
        return min(100.0, (self.current_step_index + 1) / self.total_questions * 100)

    @property
    def tags(self) -> List[str]:
        """All response tags in question order; duplicates are kept."""
        tags: List[str] = []
        for question in self.config.questions:
            response = self.responses.get(question.id)
            if response is not None:
                tags.extend(response.tags)
        return tags

    @property
    def has_pending_advance(self) -> bool:
        return self._pending is not None and self._pending.active

    # --- Operations ---

    def record_response(self, question_id: QuestionId, raw_input: Any) -> Response:
        self._ensure_open("record a response")
        question = self.config.question_by_id(question_id)
        if question is None:
            raise SessionStateError(f"Unknown question id: {question_id}")

        response = build_response(question, raw_input, timestamp=self._clock())
        self.responses[question.id] = response
        self.errors.pop(question.id, None)
        logger.debug(f"Session {self.session_id}: recorded {question.type} response for question {question.id}")

        current = self.current_question
        if self._auto_advance and question.type == "multiple_choice" and current is not None and current.id == question.id:
            self._schedule_auto_advance()
        return response

    def validate_current(self) -> bool:
        self._ensure_open("validate")
        question = self.current_question
        error = validate_field(question, self.responses.get(question.id))
        if error:
            self.errors[question.id] = error
            logger.warning(f"Session {self.session_id}: question {question.id} failed validation: {error}")
            return False
        self.errors.pop(question.id, None)
        return True

    def advance(self) -> bool:
        """
        Validates the current question and moves forward, completing the
        session after the last question.

        Returns:
            True if the session moved (or completed), False if validation or
            the completion path failed.
        """
        self._ensure_open("advance")
        self._cancel_pending()
        if not self.validate_current():
            return False
        return self._step_forward()

    def finalize(self) -> FormResult:
        """
        Builds the result bundle from the collected responses.

        Once the session is Complete the same bundle is returned on every call.
        """
        if self.result is not None:
            return self.result

        timestamps = [response.timestamp for response in self.responses.values()]
        return FormResult(
            responses=dict(self.responses),
            tags=self.tags,
            completed_at=self._clock(),
            form_version=self.config.form_metadata.version,
            total_questions=self.total_questions,
            completion_time=self._completion_time(timestamps),
        )

    def close(self):
        """Tears the session down; a pending auto-advance becomes a no-op."""
        self._cancel_pending()
        self._closed = True
        logger.debug(f"Session {self.session_id} closed")

    # --- Internals ---

    def _ensure_open(self, action: str):
        if self._closed:
            raise SessionStateError(f"Cannot {action}: session {self.session_id} is closed")
        if self.is_complete:
            raise SessionStateError(f"Cannot {action}: session {self.session_id} is complete")

    def _step_forward(self) -> bool:
        if self.current_step_index < self.total_questions - 1:
            self.current_step_index += 1
            logger.debug(f"Session {self.session_id}: advanced to step {self.current_step_index}")
            if self._on_progress:
                self._on_progress(self.current_step_index, self.total_questions)
            return True
        return self._complete()

    def _complete(self) -> bool:
        if self.is_submitting:
            logger.warning(f"Session {self.session_id}: completion already in progress, ignoring")
            return False

        self.is_submitting = True
        try:
            result = self.finalize()
            if self._on_complete:
                self._on_complete(result)
        except Exception as e:
            logger.exception(f"Session {self.session_id}: form completion failed: {e}")
            self.errors[SUBMISSION_ERROR_KEY] = SUBMISSION_ERROR_MESSAGE
            error = SubmissionError(str(e))
            error.__cause__ = e
            self.last_submission_error = error
            return False
        finally:
            self.is_submitting = False

        self.errors.pop(SUBMISSION_ERROR_KEY, None)
        self.last_submission_error = None
        self.result = result
        self.current_step_index = self.total_questions
        logger.info(
            f"Session {self.session_id} complete: {len(result.responses)} responses, {len(result.tags)} tags"
        )
        return True

    def _schedule_auto_advance(self):
        self._cancel_pending()
        token = TimerToken(self.session_id, self.current_step_index)
        self._pending = token

        def fire():
            if not token.active:
                return
            token.mark_fired()
            if self._closed or self.is_complete or self.current_step_index != token.step:
                logger.debug(f"Session {self.session_id}: dropped stale auto-advance for step {token.step}")
                return
            self._step_forward()

        try:
            handle = self._scheduler(self._auto_advance_delay, fire)
        except RuntimeError as e:
            # No event loop to run the default scheduler on; advance() still works.
            token.cancel()
            self._pending = None
            logger.warning(f"Session {self.session_id}: auto-advance unavailable ({e})")
            return
        token.bind(handle)

    def _cancel_pending(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    @staticmethod
    def _completion_time(timestamps: List[datetime]) -> Optional[CompletionTime]:
        if len(timestamps) < 2:
            return None
        total_ms = round((max(timestamps) - min(timestamps)).total_seconds() * 1000)
        return CompletionTime(
            total_ms=total_ms,
            total_seconds=round(total_ms / 1000),
            average_per_question=round(total_ms / len(timestamps) / 1000),
        )
