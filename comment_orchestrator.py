"""
Fans out one comment-page fetch per post in a listing, and fires a single completion when they've all resolved.

Flow for one run:
- fetch + decode the listing (failure here is fatal and ends the run)
- no posts -> complete right away with an empty result
- otherwise submit one comment-page fetch per post to a bounded worker pool
- each worker decodes, flattens, and hands its comments (or its error) to the run's `CommentAggregator`
- the worker that resolves the last outstanding post gets the frozen result back and calls `on_complete`
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

from comment_aggregator import CommentAggregator
from comment_decoder import ResourceDecoder
from comment_flattener import CommentFlattener
from comment_models import (
    DEFAULT_MAX_DEPTH,
    AggregationResult,
    Comment,
    CommentsResponse,
    CommentToolsError,
    Post,
    PostsResponse,
)
from reddit_api import PER_POST_COMMENT_COUNT, POST_FETCH_COUNT, CommentSort, PostsCategory, UrlBuilder

log = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS: int = 8

CompletionCallback = Callable[[AggregationResult], None]
ProgressCallback = Callable[[Post, int, int, int], None]  # (post, comment_count, resolved, total)


class JsonFetcher(Protocol):
    """
    The transport collaborator; `reddit_api.ApiClient` satisfies it.
    """

    def get_json(self, url: str, params: dict[str, str] | None = None) -> object: ...


@dataclass(frozen=True)
class AggregationRequest:
    category: PostsCategory = PostsCategory.TOP
    sort: CommentSort = CommentSort.CONTROVERSIAL
    post_limit: int = POST_FETCH_COUNT
    comment_limit: int = PER_POST_COMMENT_COUNT


class FetchOrchestrator:
    """
    Coordinates the listing fetch and the concurrent per-post comment fetches.
    - Runs fetches on a `ThreadPoolExecutor` bounded by `max_workers`.
    - Treats a failed listing as fatal; treats a failed post as a logged, recorded, non-fatal miss.
    - Never retries; that's the transport's business.
    - Invokes `on_complete` exactly once per `aggregate()` call.
    - Usable as a context manager; `close()` waits for in-flight work and shuts the pool down.
    """

    def __init__(
        self,
        api: JsonFetcher,
        *,
        urls: UrlBuilder | None = None,
        decoder: ResourceDecoder | None = None,
        flattener: CommentFlattener | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.api: JsonFetcher = api
        self.urls: UrlBuilder = urls or UrlBuilder()
        self.decoder: ResourceDecoder = decoder or ResourceDecoder(max_depth)
        self.flattener: CommentFlattener = flattener or CommentFlattener(max_depth)
        self.executor: ThreadPoolExecutor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='comments')

    def __enter__(self) -> 'FetchOrchestrator':
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.executor.shutdown(wait=True)

    ## public api ---------------------------------------------------

    def aggregate(
        self,
        request: AggregationRequest,
        on_complete: CompletionCallback,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """
        Starts a run and returns immediately; `on_complete` is later called once, from a worker thread.
        Called by: aggregate_future()
        """
        log.info(
            f'aggregating comments from {request.post_limit} posts in "{request.category.value}" '
            f'sorted by "{request.sort.value}"'
        )
        self.executor.submit(self._fetch_listing, request, on_complete, on_progress)

    def aggregate_future(self, request: AggregationRequest, on_progress: ProgressCallback | None = None) -> Future:
        """
        Future-based wrapper; resolves to an `AggregationResult`, or raises the fatal listing error.
        """
        future: Future = Future()

        def settle(result: AggregationResult) -> None:
            if result.error is not None:
                future.set_exception(result.error)
            else:
                future.set_result(result)

        self.aggregate(request, settle, on_progress)
        return future

    def run(
        self, request: AggregationRequest, on_progress: ProgressCallback | None = None, timeout: float | None = None
    ) -> AggregationResult:
        """
        Blocking wrapper; returns the result or raises the fatal listing error.
        Called by: gather_comments.main()
        """
        return self.aggregate_future(request, on_progress).result(timeout=timeout)

    ## workers ------------------------------------------------------

    def _fetch_listing(
        self, request: AggregationRequest, on_complete: CompletionCallback, on_progress: ProgressCallback | None
    ) -> None:
        try:
            raw: object = self.api.get_json(self.urls.posts_url(request.category), self.urls.posts_params(request.post_limit))
            response: PostsResponse = self.decoder.decode_posts_response(raw)
        except CommentToolsError as exc:
            log.error(f'listing fetch failed for "{request.category.value}"; ``{exc}``')
            self._complete(on_complete, AggregationResult(error=exc))
            return
        except Exception as exc:
            log.exception(f'unexpected error fetching listing for "{request.category.value}"')
            self._complete(on_complete, AggregationResult(error=exc))
            return

        posts: list[Post] = unique_posts(response.posts)
        if not posts:
            log.info('listing returned no posts')
            self._complete(on_complete, AggregationResult())
            return

        aggregator = CommentAggregator(post.id for post in posts)
        for post in posts:
            try:
                self.executor.submit(self._fetch_comments, post, request, aggregator, on_complete, on_progress)
            except RuntimeError as exc:  # pool already shut down
                log.error(f'could not schedule comments fetch for ``{post.comments_path}``; ``{exc}``')
                self._resolve(post, set(), exc, aggregator, on_complete, on_progress)
        return

    def _fetch_comments(
        self,
        post: Post,
        request: AggregationRequest,
        aggregator: CommentAggregator,
        on_complete: CompletionCallback,
        on_progress: ProgressCallback | None,
    ) -> None:
        comments: set[Comment] = set()
        error: Exception | None = None
        try:
            raw: object = self.api.get_json(
                self.urls.comments_url(post), self.urls.comments_params(request.sort, request.comment_limit)
            )
            response: CommentsResponse = self.decoder.decode_comments_response(raw)
            comments = self.flattener.flatten(response.comment_tree)
        except CommentToolsError as exc:
            log.warning(f'skipping comments for ``{post.comments_path}``; ``{exc}``')
            error = exc
        except Exception as exc:
            log.exception(f'unexpected error fetching comments for ``{post.comments_path}``')
            error = exc
        self._resolve(post, comments, error, aggregator, on_complete, on_progress)
        return

    def _resolve(
        self,
        post: Post,
        comments: set[Comment],
        error: Exception | None,
        aggregator: CommentAggregator,
        on_complete: CompletionCallback,
        on_progress: ProgressCallback | None,
    ) -> None:
        result, resolved = aggregator.resolve(post.id, comments=comments, error=error)
        log.info(f'{len(comments)} comments in {post.comments_path} ({resolved}/{aggregator.total})')
        if on_progress is not None:
            try:
                on_progress(post, len(comments), resolved, aggregator.total)
            except Exception:
                log.exception('progress callback raised')
        if result is not None:
            self._complete(on_complete, result)
        return

    def _complete(self, on_complete: CompletionCallback, result: AggregationResult) -> None:
        try:
            on_complete(result)
        except Exception:
            log.exception('completion callback raised')


def unique_posts(posts: Iterable[Post]) -> list[Post]:
    """
    Drops repeated post ids (first one wins), so each outstanding id maps to exactly one fetch.
    """
    seen: set[str] = set()
    unique: list[Post] = []
    for post in posts:
        if post.id in seen:
            log.debug(f'dropping duplicate post, ``{post.id}``')
            continue
        seen.add(post.id)
        unique.append(post)
    return unique
