"""
HTTP access to reddit's public JSON api.

Holds the url-building, the endpoint enums, and a small httpx wrapper that
  retries transient failures and turns everything else into `TransportError` / `DecodeError`.
"""

import enum
import json
import logging
import time

import httpx

from comment_models import DecodeError, Post, TransportError

log = logging.getLogger(__name__)

## constants --------------------------------------------------------
BASE_URL: str = 'https://www.reddit.com'
USER_AGENT: str = 'reddit-comment-tools/1.0'
POST_FETCH_COUNT: int = 100
PER_POST_COMMENT_COUNT: int = 500
DEFAULT_MAX_TRIES: int = 4
REQUEST_PAUSE_SECONDS: float = 0.2  # polite pause before each request


class PostsCategory(enum.StrEnum):
    HOT = 'hot'
    NEW = 'new'
    RANDOM = 'random'
    RISING = 'rising'
    TOP = 'top'


class CommentSort(enum.StrEnum):
    CONFIDENCE = 'confidence'
    TOP = 'top'
    NEW = 'new'
    CONTROVERSIAL = 'controversial'
    OLD = 'old'
    RANDOM = 'random'
    QA = 'qa'
    LIVE = 'live'


class UrlBuilder:
    """
    Centralizes construction of reddit json urls.
    - Holds a configurable `base` host to support testing and overrides.
    - Builds listing urls like `{base}/top.json`.
    - Builds comment-page urls like `{base}/r/python/comments/abc123.json`.
    - Builds the matching query-params for each.
    """

    def __init__(self, base: str = BASE_URL) -> None:
        self.base: str = base.rstrip('/')

    def posts_url(self, category: PostsCategory) -> str:
        return f'{self.base}/{category.value}.json'

    def posts_params(self, limit: int) -> dict[str, str]:
        return {'limit': str(limit)}

    def comments_url(self, post: Post) -> str:
        return f'{self.base}/{post.comments_path}.json'

    def comments_params(self, sort: CommentSort, limit: int) -> dict[str, str]:
        return {'sort': sort.value, 'limit': str(limit)}


class ApiClient:
    """
    Encapsulates HTTP interactions with retries and backoff.
    - Implements exponential backoff and small pre-flight sleeps.
    - Treats 5xx responses and connection-level errors as retryable.
    - Raises `TransportError` (wrapping the httpx exception) after exhausting the retry budget,
      or straight away for 4xx responses.
    - Raises `DecodeError` when a 2xx body isn't valid json.
    - Shares one `httpx.Client`, which is safe to use from the orchestrator's worker threads.
    """

    def __init__(self, client: httpx.Client, *, max_tries: int = DEFAULT_MAX_TRIES, timeout_s: float = 30.0) -> None:
        self.client: httpx.Client = client
        self.max_tries: int = max(1, max_tries)
        self.timeout_s: float = timeout_s

    def get_with_retries(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        last_exc: Exception | None = None
        for attempt in range(1, self.max_tries + 1):
            try:
                _sleep(REQUEST_PAUSE_SECONDS)
                resp: httpx.Response = self.client.get(url, params=params, timeout=self.timeout_s, follow_redirects=True)
                if resp.status_code >= 500:
                    raise httpx.HTTPStatusError(f'server error {resp.status_code}', request=resp.request, response=resp)
                return resp
            except httpx.HTTPError as exc:
                last_exc = exc
                log.debug(f'attempt {attempt}/{self.max_tries} failed for ``{url}``; ``{exc}``')
                if attempt < self.max_tries:
                    _sleep(min(2**attempt, 15))
        assert last_exc is not None
        raise last_exc

    def get_json(self, url: str, params: dict[str, str] | None = None) -> object:
        """
        Fetches `url` and returns the parsed json body.
        Called by: FetchOrchestrator._fetch_listing(), FetchOrchestrator._fetch_comments()
        """
        try:
            resp: httpx.Response = self.get_with_retries(url, params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(str(exc), url=url, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f'{type(exc).__name__}: {exc}', url=url) from exc
        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise DecodeError(f'response from ``{url}`` is not valid json; ``{exc}``') from exc


def build_client(*, max_connections: int = 10, user_agent: str = USER_AGENT) -> httpx.Client:
    """
    Creates the shared httpx client (headers, timeouts, limits).
    Called by: gather_comments.main()
    """
    headers: dict[str, str] = {'user-agent': user_agent}
    timeout: httpx.Timeout = httpx.Timeout(connect=30.0, read=60.0, write=60.0, pool=30.0)
    limits: httpx.Limits = httpx.Limits(max_keepalive_connections=max_connections, max_connections=max_connections)
    return httpx.Client(headers=headers, timeout=timeout, limits=limits)


def _sleep(backoff_s: float) -> None:
    """
    Sleeps for given seconds; centralizes sleep for easier tweaking (and patching in tests).
    """
    time.sleep(backoff_s)
