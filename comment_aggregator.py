"""
Shared state for one aggregation run: the outstanding posts and the merged comments.
"""

import logging
import threading
from collections.abc import Iterable

from comment_models import AggregationResult, Comment

log = logging.getLogger(__name__)


class CommentAggregator:
    """
    Owns the outstanding-post set and the deduplicated comment set for a single run.
    - One lock guards everything: outstanding ids, merged comments, per-post failures, and the fired flag.
    - `resolve()` does merge + remove + empty-check inside that one lock, so the transition
      to zero outstanding is observed by exactly one caller.
    - Comments are only readable through the frozen `AggregationResult` that `resolve()` hands out.
    """

    def __init__(self, post_ids: Iterable[str]) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._outstanding: set[str] = set(post_ids)
        self._total: int = len(self._outstanding)
        self._comments: set[Comment] = set()
        self._failures: dict[str, Exception] = {}
        self._fired: bool = False

    @property
    def total(self) -> int:
        return self._total

    @property
    def outstanding_count(self) -> int:
        with self._lock:
            return len(self._outstanding)

    @property
    def resolved_count(self) -> int:
        with self._lock:
            return self._total - len(self._outstanding)

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired

    def merge(self, comments: Iterable[Comment]) -> None:
        """
        Unions `comments` into the aggregated set; safe to call from any thread.
        """
        with self._lock:
            self._merge_locked(comments)

    def resolve(
        self, post_id: str, comments: Iterable[Comment] | None = None, error: Exception | None = None
    ) -> tuple[AggregationResult | None, int]:
        """
        Records the outcome for `post_id`; returns `(result, resolved_count)`.

        Pass `comments` on success or `error` on failure; a failed post contributes nothing.
        `result` is the final `AggregationResult` when this was the last outstanding post, otherwise None
          (other posts still outstanding, `post_id` unknown or already resolved, or result already handed out).
        `resolved_count` is read under the same lock, so progress numbers never repeat or skip.
        Called by: FetchOrchestrator._resolve()
        """
        with self._lock:
            if post_id not in self._outstanding:
                log.warning(f'ignoring resolution for post not outstanding, ``{post_id}``')
                return None, self._total - len(self._outstanding)
            if error is not None:
                self._failures[post_id] = error
            elif comments is not None:
                self._merge_locked(comments)
            self._outstanding.discard(post_id)
            resolved: int = self._total - len(self._outstanding)
            if self._outstanding or self._fired:
                return None, resolved
            self._fired = True
            result = AggregationResult(
                comments=frozenset(self._comments),
                failures=dict(self._failures),
                post_count=self._total,
            )
            return result, resolved

    def _merge_locked(self, comments: Iterable[Comment]) -> None:
        if self._fired:
            raise RuntimeError('aggregation already completed; refusing to merge')
        self._comments.update(comments)
