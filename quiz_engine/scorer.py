# quiz_engine/scorer.py
# Maps a collected tag list onto the best-matching catalog item.

import logging
import random
from collections import Counter
from typing import List, Optional, Sequence

from .models import CatalogItem, ScoredItem, ScoreTrace

logger = logging.getLogger(__name__)

DEFAULT_NOISE = 0.1
DEFAULT_TIE_WINDOW = 0.15


class ResultScorer:
    """
    Tag-overlap scorer with a randomized tie-break.

    Each item scores the number of input tags it owns (repeats count), divided
    by the size of its own tag set, plus uniform noise in [0, noise). The pick
    is drawn uniformly from every item whose final score is within
    `tie_window` of the top score.

    Args:
        rng: Random source; inject a seeded `random.Random` for repeatable runs.
        noise: Upper bound of the uniform noise added to each normalized score.
        tie_window: Width of the candidate window below the top score.
    """

    def __init__(self, rng: Optional[random.Random] = None, noise: float = DEFAULT_NOISE,
                 tie_window: float = DEFAULT_TIE_WINDOW):
        self.rng = rng or random.Random()
        self.noise = noise
        self.tie_window = tie_window

    def rank(self, tags: Sequence[str], catalog: Sequence[CatalogItem]) -> List[ScoredItem]:
        """Scores every item and returns them best first."""
        if not catalog:
            raise ValueError("Cannot score against an empty catalog")

        tag_counts = Counter(tags)
        scored = []
        for item in catalog:
            raw_score = sum(tag_counts[tag] for tag in set(item.tags))
            normalized_score = raw_score / max(1, len(item.tags))
            final_score = normalized_score + self.rng.uniform(0, self.noise)
            scored.append(ScoredItem(
                item=item,
                raw_score=raw_score,
                normalized_score=normalized_score,
                final_score=final_score,
            ))

        scored.sort(key=lambda s: s.final_score, reverse=True)
        return scored

    def score_with_trace(self, tags: Sequence[str], catalog: Sequence[CatalogItem]) -> ScoreTrace:
        ranking = self.rank(tags, catalog)
        top_score = ranking[0].final_score
        candidates = [s for s in ranking if abs(s.final_score - top_score) < self.tie_window]
        selected = self.rng.choice(candidates)

        logger.debug(
            f"Scored {len(tags)} tags against {len(catalog)} items: top {ranking[0].item.name} "
            f"({top_score:.3f}), {len(candidates)} candidate(s), selected {selected.item.name}"
        )
        return ScoreTrace(ranking=ranking, candidates=candidates, selected=selected)

    def score(self, tags: Sequence[str], catalog: Sequence[CatalogItem]) -> ScoredItem:
        return self.score_with_trace(tags, catalog).selected


def score(tags: Sequence[str], catalog: Sequence[CatalogItem], rng: Optional[random.Random] = None) -> ScoredItem:
    """Convenience wrapper using the default noise and tie window."""
    return ResultScorer(rng=rng).score(tags, catalog)
