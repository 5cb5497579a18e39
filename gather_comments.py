# /// script
# requires-python = "==3.12.*"
# dependencies = [
#   "httpx~=0.28.0",
#   "tqdm",
#   "humanize"
# ]
# ///

"""
Collects the comments of a reddit listing into one deduplicated JSON file.
It fetches the listing (eg "top"), then fetches every post's comment page concurrently,
  flattens each comment tree, and writes `[{"body": ..., "score": ...}, ...]`.

Usage:
  uv run ./gather_comments.py --category top --sort controversial --output-dir "../output_dir"

Args:
  --category (optional) -- hot/new/random/rising/top; default top
  --sort (optional) -- comment sort; default controversial
  --post-limit (optional) -- posts to fetch from the listing; default 100
  --comment-limit (optional) -- comments to request per post; default 500
  --max-workers (optional) -- concurrent comment-page fetches; default 8
  --max-depth (optional) -- deepest reply nesting accepted; default 100
  --max-tries (optional) -- attempts per request; default 4
  --output-dir (optional) -- default: current directory
  --ignore-cache (optional) -- re-fetch even if the output file already exists
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import humanize
from tqdm import tqdm

from comment_models import DEFAULT_MAX_DEPTH, AggregationResult, Comment, CommentToolsError, Post, comments_to_json
from comment_orchestrator import DEFAULT_MAX_WORKERS, AggregationRequest, FetchOrchestrator
from reddit_api import (
    BASE_URL,
    DEFAULT_MAX_TRIES,
    PER_POST_COMMENT_COUNT,
    POST_FETCH_COUNT,
    ApiClient,
    CommentSort,
    PostsCategory,
    UrlBuilder,
    build_client,
)

## setup logging ----------------------------------------------------
log_level_name: str = os.getenv('LOG_LEVEL', 'INFO').upper()
log_level = getattr(
    logging, log_level_name, logging.INFO
)  # maps the string name to the corresponding logging level constant; defaults to INFO
logging.basicConfig(
    level=log_level,
    format='[%(asctime)s] %(levelname)s [%(module)s-%(funcName)s()::%(lineno)d] %(message)s',
    datefmt='%d/%b/%Y %H:%M:%S',
)
if log_level <= logging.INFO:
    for noisy in ('httpx', 'httpcore'):  # prevent httpx from logging
        lg = logging.getLogger(noisy)
        lg.setLevel(logging.WARNING)  # or logging.ERROR if you prefer only errors
        lg.propagate = False  # don't bubble up to root
log = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    """
    argparse `type=` for counts and limits; rejects zero, negatives, and non-integers.
    """
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected a positive integer, got {value!r}')
    if number <= 0:
        raise argparse.ArgumentTypeError(f'expected a positive integer, got {number}')
    return number


class CLI:
    """
    Manages command-line parsing for the script entrypoint.
    - Builds an argparse parser; every option has a default taken from the module constants.
    - Restricts `--category` and `--sort` to the values reddit accepts.
    - Exposes a parse helper to support testing with custom argv.
    - Converts the parsed namespace into an `AggregationRequest` for the orchestrator.
    """

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description='Collect deduplicated comments for a reddit listing.')
        parser.add_argument(
            '--category', type=PostsCategory, choices=list(PostsCategory), default=PostsCategory.TOP, help='Listing to read.'
        )
        parser.add_argument(
            '--sort',
            type=CommentSort,
            choices=list(CommentSort),
            default=CommentSort.CONTROVERSIAL,
            help='Sort order requested for each comment page.',
        )
        parser.add_argument('--post-limit', type=positive_int, default=POST_FETCH_COUNT, metavar='INTEGER')
        parser.add_argument('--comment-limit', type=positive_int, default=PER_POST_COMMENT_COUNT, metavar='INTEGER')
        parser.add_argument('--max-workers', type=positive_int, default=DEFAULT_MAX_WORKERS, metavar='INTEGER')
        parser.add_argument('--max-depth', type=positive_int, default=DEFAULT_MAX_DEPTH, metavar='INTEGER')
        parser.add_argument('--max-tries', type=positive_int, default=DEFAULT_MAX_TRIES, metavar='INTEGER')
        parser.add_argument('--base-url', default=BASE_URL, help='Override the api host (useful for testing).')
        parser.add_argument('--output-dir', default='.', help='Directory to write the comments json to.')
        parser.add_argument(
            '--ignore-cache',
            action='store_true',
            help='Optional. Re-fetch even if the output file for this category already exists.',
        )
        return parser

    @staticmethod
    def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
        return CLI.build_parser().parse_args(argv)

    @staticmethod
    def build_request(args: argparse.Namespace) -> AggregationRequest:
        return AggregationRequest(
            category=args.category,
            sort=args.sort,
            post_limit=args.post_limit,
            comment_limit=args.comment_limit,
        )


def output_filename(category: PostsCategory) -> str:
    return f'reddit-comments-{category.value}.json'


def export_comments(comments: frozenset[Comment] | set[Comment], path: Path) -> Path:
    """
    Writes comments as a json array of `{body, score}` objects.
    Called by: main()
    """
    log.info(f'writing comments to ``{path}``')
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as fh:
        json.dump(comments_to_json(comments), fh, ensure_ascii=False, indent=2)
    return path


def build_summary(result: AggregationResult, path: Path, elapsed: timedelta) -> str:
    """
    Builds the human-readable wrap-up lines.
    Called by: main()
    """
    size: int = path.stat().st_size if path.exists() else 0
    lines: list[str] = [
        f'Done. {humanize.intcomma(len(result.comments))} unique comment(s) from {result.post_count} post(s).',
        f'Failed posts: {len(result.failures)}',
        f'Comments JSON: {path} ({humanize.naturalsize(size)})',
        f'Elapsed: {humanize.precisedelta(elapsed, minimum_unit="seconds", format="%0.1f")}',
    ]
    return '\n'.join(lines)


def main(argv: list[str] | None = None) -> int:
    """
    Fetches a listing's comments and writes them to json, unless a cached file already exists.

    Flow:
    - Parses CLI args and computes the output path.
    - If the output file exists and `--ignore-cache` wasn't given, reports it and exits.
    - Creates an httpx client sized to the worker count.
    - Runs the orchestrator with a tqdm bar ticking once per resolved post.
    - Writes the json output and prints a summary.
    - A failed listing fetch prints the error and returns 1 without writing anything.

    Called by: dundermain
    """
    ## handle args --------------------------------------------------
    args: argparse.Namespace = CLI.parse_args(argv)
    request: AggregationRequest = CLI.build_request(args)
    out_path: Path = Path(args.output_dir).expanduser().resolve() / output_filename(request.category)

    ## use cached output if present ---------------------------------
    if out_path.exists() and not args.ignore_cache:
        print(f'Using existing comments file: {out_path} (pass --ignore-cache to re-fetch)')
        return 0

    ## fetch --------------------------------------------------------
    start_time: datetime = datetime.now()
    with build_client(max_connections=args.max_workers) as client:
        api = ApiClient(client, max_tries=args.max_tries)
        with FetchOrchestrator(
            api, urls=UrlBuilder(args.base_url), max_workers=args.max_workers, max_depth=args.max_depth
        ) as orchestrator:
            with tqdm(desc='Fetching comment pages', unit='post') as bar:

                def on_progress(post: Post, comment_count: int, resolved: int, total: int) -> None:
                    bar.total = total
                    bar.update(1)

                try:
                    result: AggregationResult = orchestrator.run(request, on_progress=on_progress)
                except CommentToolsError as exc:
                    print(f'‼️ listing fetch failed: {exc}', file=sys.stderr)
                    return 1

    ## write output -------------------------------------------------
    export_comments(result.comments, out_path)
    for post_id, exc in sorted(result.failures.items()):
        print(f'Error fetching comments for {post_id}: {exc}', file=sys.stderr)
    print(build_summary(result, out_path, datetime.now() - start_time))
    return 0

    ## end def main()


if __name__ == '__main__':
    try:
        raise SystemExit(main())
    except Exception as e:
        raise SystemExit(f'‼️ {e}')
