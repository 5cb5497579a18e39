"""
Turns parsed reddit JSON into the typed records in `comment_models`.

Required fields raise `DecodeError`. Optional fields are each decoded by their own field-decoder;
  a `DecodeError` from that one field is caught right there and the field becomes None,
  so a malformed `score` never costs us the `body` next to it.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from comment_models import (
    Comment,
    CommentsResponse,
    DEFAULT_MAX_DEPTH,
    DecodeError,
    Node,
    Post,
    PostsResponse,
    StructuralError,
)

log = logging.getLogger(__name__)

T = TypeVar('T')


## field decoders ---------------------------------------------------


def decode_str(value: object) -> str:
    if not isinstance(value, str):
        raise DecodeError(f'expected string, got {type(value).__name__}')
    return value


def decode_int(value: object) -> int:
    """
    Accepts ints (but not bools, which are ints in python) and integral floats like `5.0`.
    """
    if isinstance(value, bool):
        raise DecodeError('expected integer, got bool')
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise DecodeError(f'expected integer, got {type(value).__name__}')


def decode_object(value: object) -> dict[str, object]:
    if not isinstance(value, dict):
        raise DecodeError(f'expected object, got {type(value).__name__}')
    return value


def decode_child_payloads(value: object) -> list[dict[str, object]]:
    """
    Unwraps `[{'kind': ..., 'data': {...}}, ...]` to the list of `data` objects.
    Only checks the wrapper shape; the payloads themselves are decoded by the caller.
    """
    if not isinstance(value, list):
        raise DecodeError(f'expected list of children, got {type(value).__name__}')
    payloads: list[dict[str, object]] = []
    for entry in value:
        wrapper: dict[str, object] = decode_object(entry)
        payload: object = wrapper.get('data')
        if not isinstance(payload, dict):
            raise DecodeError('child entry has no `data` object')
        payloads.append(payload)
    return payloads


def require(container: dict[str, object], key: str, decode: Callable[[object], T]) -> T:
    """
    Decodes a required field; a missing key or wrong type fails the whole record.
    """
    if key not in container:
        raise DecodeError(f'missing required field `{key}`')
    try:
        return decode(container[key])
    except DecodeError as exc:
        raise DecodeError(f'invalid required field `{key}`: {exc}') from exc


def optional(container: dict[str, object], key: str, decode: Callable[[object], T]) -> T | None:
    """
    Decodes an optional field; a missing key, null, or a `DecodeError` from `decode` yields None.
    `StructuralError` is not a `DecodeError`, so a depth overflow still propagates.
    """
    value: object = container.get(key)
    if value is None:
        return None
    try:
        return decode(value)
    except DecodeError as exc:
        log.debug(f'treating optional field `{key}` as absent; ``{exc}``')
        return None


## resource decoder -------------------------------------------------


class ResourceDecoder:
    """
    Decodes listing and comment-page JSON into typed records.
    - Posts: `id`, `title`, `subreddit_name_prefixed` required; `selftext` optional.
    - Comments: `body`, `score`, `replies` all optional; reddit sends `replies: ""` for leaf comments.
    - Nodes: `kind` and `data` required; `data.children` optional.
    - Comment-page: needs at least two elements, and the first must echo the post.
    - Guards reply nesting with `max_depth`, raising `StructuralError` beyond it.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth: int = max_depth

    def decode_post(self, raw: object) -> Post:
        container: dict[str, object] = decode_object(raw)
        return Post(
            id=require(container, 'id', decode_str),
            title=require(container, 'title', decode_str),
            subreddit=require(container, 'subreddit_name_prefixed', decode_str),
            text=optional(container, 'selftext', decode_str),
        )

    def decode_comment(self, raw: object, depth: int = 0) -> Comment:
        container: dict[str, object] = decode_object(raw)
        return Comment(
            body=optional(container, 'body', decode_str),
            score=optional(container, 'score', decode_int),
            replies=optional(container, 'replies', lambda value: self.decode_comment_node(value, depth + 1)),
        )

    def decode_node(self, raw: object, decode_child: Callable[[object], T]) -> Node[T]:
        """
        Decodes `{kind, data: {children: [{data: ...}, ...]}}`.
        A child-wrapper that isn't `{data: {...}}` invalidates the (optional) children field.
        A child whose payload fails its own required fields fails the node.
        """
        container: dict[str, object] = decode_object(raw)
        kind: str = require(container, 'kind', decode_str)
        data: dict[str, object] = require(container, 'data', decode_object)
        payloads: list[dict[str, object]] | None = optional(data, 'children', decode_child_payloads)
        if payloads is None:
            return Node(kind=kind, children=None)
        return Node(kind=kind, children=tuple(decode_child(payload) for payload in payloads))

    def decode_comment_node(self, raw: object, depth: int = 0) -> Node[Comment]:
        container: dict[str, object] = decode_object(raw)
        if depth > self.max_depth:
            raise StructuralError(f'comment tree deeper than max_depth ({self.max_depth})')
        return self.decode_node(container, lambda value: self.decode_comment(value, depth))

    def decode_posts_response(self, raw: object) -> PostsResponse:
        """
        Called by: FetchOrchestrator._fetch_listing()
        """
        node: Node[Post] = self.decode_node(raw, self.decode_post)
        return PostsResponse(node=node)

    def decode_comments_response(self, raw: object) -> CommentsResponse:
        """
        Called by: FetchOrchestrator._fetch_comments()
        """
        if not isinstance(raw, list) or len(raw) < 2:
            raise DecodeError('corrupt response shape; expected [post-listing, comment-listing]')
        post_node: Node[Post] = self.decode_node(raw[0], self.decode_post)
        if not post_node.items:
            raise DecodeError('corrupt response shape; comment page does not echo its post')
        comment_tree: Node[Comment] = self.decode_comment_node(raw[1])
        return CommentsResponse(post=post_node.items[0], comment_tree=comment_tree)