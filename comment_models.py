"""
Typed records for reddit listings and comment trees, plus the package's error types.

The shapes mirror reddit's JSON:
- a listing is a `Node` whose `data.children` each wrap a `Post`
- a comment page is a two-element array: a `Node[Post]` echoing the post, then a `Node[Comment]`
- each `Comment` may carry its own `replies` node, so comment trees nest arbitrarily deep
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar('T')

DEFAULT_MAX_DEPTH: int = 100  # deepest reply nesting accepted by the decoder and the flattener


## errors -----------------------------------------------------------


class CommentToolsError(Exception):
    """
    Base class for errors raised while fetching, decoding, or flattening.
    """


class TransportError(CommentToolsError):
    """
    Raised when the underlying fetch failed (connectivity, non-2xx status, etc).
    """

    def __init__(self, message: str, *, url: str = '', status_code: int | None = None) -> None:
        super().__init__(message)
        self.url: str = url
        self.status_code: int | None = status_code


class DecodeError(CommentToolsError):
    """
    Raised when a required field or the overall response shape is invalid.
    """


class StructuralError(CommentToolsError):
    """
    Raised when a comment tree nests deeper than the configured maximum.
    """


## records ----------------------------------------------------------


@dataclass(frozen=True)
class Post:
    """
    One entry of a listing; identifies the comment page to fetch.
    """

    id: str
    title: str
    subreddit: str  # prefixed form, like `r/python`
    text: str | None = None

    @property
    def comments_path(self) -> str:
        return '/'.join([self.subreddit, 'comments', self.id])


@dataclass(frozen=True)
class Comment:
    """
    A comment in a reply tree.

    Identity is `(body, score)`; `replies` is kept for traversal only and is ignored by `==` and `hash()`,
      so the same text+score seen in two different threads collapses to one entry.
    """

    body: str | None = None
    score: int | None = None
    replies: Node[Comment] | None = field(default=None, compare=False, hash=False, repr=False)

    @property
    def key(self) -> tuple[str | None, int | None]:
        return (self.body, self.score)

    @property
    def has_content(self) -> bool:
        return self.body is not None or self.score is not None

    def to_json(self) -> dict[str, object]:
        return {'body': self.body, 'score': self.score}


@dataclass(frozen=True)
class Node(Generic[T]):
    """
    One level of a reddit listing: a `kind` tag plus the (optional) decoded children payloads.
    `children` is None when the field was missing or malformed; `items` treats that as empty.
    """

    kind: str
    children: tuple[T, ...] | None = None

    @property
    def items(self) -> tuple[T, ...]:
        return self.children or ()


@dataclass(frozen=True)
class PostsResponse:
    node: Node[Post]

    @property
    def posts(self) -> tuple[Post, ...]:
        return self.node.items


@dataclass(frozen=True)
class CommentsResponse:
    """
    A post's comment page: the echoed post and the root of its comment tree.
    """

    post: Post
    comment_tree: Node[Comment]


@dataclass(frozen=True)
class AggregationResult:
    """
    Terminal outcome of one aggregation run.
    - `comments`: deduplicated comments from every post whose comment page resolved successfully.
    - `failures`: post-id -> exception, for posts whose fetch or decode failed (non-fatal).
    - `error`: set only when the listing itself could not be fetched or decoded (fatal).
    """

    comments: frozenset[Comment] = frozenset()
    failures: dict[str, Exception] = field(default_factory=dict)
    post_count: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def comments_to_json(comments: Iterable[Comment]) -> list[dict[str, object]]:
    """
    Serializes comments to `[{'body': ..., 'score': ...}, ...]`, dropping replies.
    Sorted by (body, score) so output files are stable across runs.
    Called by: gather_comments.export_comments()
    """
    ordered: list[Comment] = sorted(
        comments, key=lambda c: (c.body is None, c.body or '', c.score is None, c.score or 0)
    )
    return [comment.to_json() for comment in ordered]
