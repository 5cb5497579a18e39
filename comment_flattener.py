"""
Collapses a nested comment tree into a flat, deduplicated set of comments.
"""

import logging

from comment_models import DEFAULT_MAX_DEPTH, Comment, Node, StructuralError

log = logging.getLogger(__name__)


class CommentFlattener:
    """
    Walks a `Node[Comment]` depth-first, collecting every comment into one set.
    - Each child is inserted before its replies are visited.
    - Equal comments (same body and score) collapse to one entry.
    - Tree structure is discarded; the collected comments still reference their `replies`.
    - Raises `StructuralError` when nesting exceeds `max_depth`.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth: int = max_depth

    def flatten(self, root: Node[Comment] | None) -> set[Comment]:
        """
        Returns the set of all comments under `root`; a fresh set on every call.
        Called by: FetchOrchestrator._fetch_comments()
        """
        aggregation: set[Comment] = set()
        self.collect(root, aggregation, depth=0)
        return aggregation

    def collect(self, node: Node[Comment] | None, aggregation: set[Comment], depth: int) -> None:
        if node is None:
            return
        if depth > self.max_depth:
            raise StructuralError(f'comment tree deeper than max_depth ({self.max_depth})')
        for child in node.items:
            aggregation.add(child)
            self.collect(child.replies, aggregation, depth + 1)
        return


def flatten(root: Node[Comment] | None, max_depth: int = DEFAULT_MAX_DEPTH) -> set[Comment]:
    """
    Convenience wrapper around `CommentFlattener(max_depth).flatten(root)`.
    """
    return CommentFlattener(max_depth).flatten(root)
