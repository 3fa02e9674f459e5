import copy
import random
from datetime import datetime, timedelta, timezone

import pytest

from quiz_engine.models import CatalogItem

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

MINIMAL_CONFIG = {
    "formMetadata": {
        "title": "Plant Match",
        "description": "Find your plant",
        "version": "1.0",
    },
    "questions": [
        {
            "id": 1,
            "type": "multiple_choice",
            "text": "How committed are you?",
            "required": True,
            "options": [
                {"id": "a", "text": "Not at all", "tags": ["low_maintenance"]},
                {"id": "b", "text": "Completely", "tags": ["high_maintenance"]},
            ],
        }
    ],
    "resultConfig": {
        "calculationMethod": "simple_tags",
        "displayType": "polaroid",
        "ctaText": "Adopt",
        "restartText": "Again",
    },
}

SLIDER_QUESTION = {
    "id": "like",
    "type": "slider",
    "text": "Do you even like plants?",
    "required": True,
    "sliderConfig": {
        "labels": ["No", "Maybe", "Yes"],
        "tags": [[], ["passive"], ["confident"]],
    },
    "validation": {"min": 0, "max": 2},
}

TEXT_QUESTION = {
    "id": "nickname",
    "type": "text",
    "text": "What would you name your plant?",
    "required": True,
    "validation": {"minLength": 5, "maxLength": 20},
}


class ManualScheduler:
    """Collects deferred callbacks; tests fire them explicitly."""

    class Handle:
        def __init__(self, delay, callback):
            self.delay = delay
            self.callback = callback
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = self.Handle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_all(self):
        """Runs every handle, cancelled ones included, the way a stale timer would."""
        handles, self.handles = self.handles, []
        for handle in handles:
            handle.callback()

    def run_pending(self):
        handles, self.handles = self.handles, []
        for handle in handles:
            if not handle.cancelled:
                handle.callback()


class StepClock:
    """Each call returns a time `step` seconds after the previous one."""

    def __init__(self, start=BASE_TIME, step=timedelta(seconds=5)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def minimal_config():
    """A fresh, valid single-question configuration document."""
    return copy.deepcopy(MINIMAL_CONFIG)


@pytest.fixture
def make_config(minimal_config):
    """Builds a valid document around the given question dicts."""
    def _make(*questions):
        document = copy.deepcopy(minimal_config)
        document["questions"] = [copy.deepcopy(q) for q in questions]
        return document
    return _make


@pytest.fixture
def catalog():
    return [
        CatalogItem(name="A", image="a.jpg", description="Easy going", tags=["low_maintenance"]),
        CatalogItem(name="B", image="b.jpg", description="Demanding", tags=["high_maintenance"]),
    ]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def slider_question():
    return copy.deepcopy(SLIDER_QUESTION)


@pytest.fixture
def text_question():
    return copy.deepcopy(TEXT_QUESTION)
