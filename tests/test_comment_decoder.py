import json
import unittest
from pathlib import Path

from comment_decoder import ResourceDecoder, decode_int
from comment_models import Comment, CommentsResponse, DecodeError, Node, Post, PostsResponse, StructuralError

TEST_DATA: Path = Path(__file__).parent / 'test_data'


def load_fixture(name: str) -> object:
    with (TEST_DATA / name).open('r', encoding='utf-8') as fh:
        return json.load(fh)


def nested_comment_json(depth: int) -> dict[str, object]:
    """
    Builds a comment-listing node with a single chain of replies `depth` levels deep.
    """
    replies: object = ''
    for level in reversed(range(depth)):
        comment: dict[str, object] = {'kind': 't1', 'data': {'body': f'level {level}', 'score': level, 'replies': replies}}
        replies = {'kind': 'Listing', 'data': {'children': [comment]}}
    return replies  # type: ignore[return-value]


class TestDecodePosts(unittest.TestCase):
    """
    Tests listing decoding.
    """

    def test_decodes_listing_fixture(self) -> None:
        """
        Checks that posts come back in order, with optional selftext handled.
        """
        decoder = ResourceDecoder()
        response: PostsResponse = decoder.decode_posts_response(load_fixture('listing_top.json'))
        computed: tuple[Post, ...] = response.posts
        expected: tuple[Post, ...] = (
            Post(
                id='p1',
                title='What is the most underrated python library?',
                subreddit='r/python',
                text='Curious what everyone uses.',
            ),
            Post(id='p2', title='Show: a tiny json differ', subreddit='r/programming', text=''),
            Post(id='p3', title='Link post without selftext', subreddit='r/pics', text=None),
        )
        self.assertEqual(computed, expected)
        self.assertEqual(response.node.kind, 'Listing')

    def test_comments_path(self) -> None:
        """
        Checks the comment-page path built from a post.
        """
        post = Post(id='abc123', title='t', subreddit='r/python')
        self.assertEqual(post.comments_path, 'r/python/comments/abc123')

    def test_missing_required_post_field_fails(self) -> None:
        """
        Checks that a post without a title fails the whole listing.
        """
        raw: dict[str, object] = {
            'kind': 'Listing',
            'data': {'children': [{'kind': 't3', 'data': {'id': 'p1', 'subreddit_name_prefixed': 'r/python'}}]},
        }
        with self.assertRaises(DecodeError):
            ResourceDecoder().decode_posts_response(raw)

    def test_mismatched_selftext_is_absent(self) -> None:
        """
        Checks that a wrongly-typed optional field decodes to None without failing the post.
        """
        raw: dict[str, object] = {'id': 'p1', 'title': 't', 'subreddit_name_prefixed': 'r/x', 'selftext': 12}
        computed: Post = ResourceDecoder().decode_post(raw)
        self.assertIsNone(computed.text)
        self.assertEqual(computed.title, 't')

    def test_missing_kind_fails(self) -> None:
        """
        Checks that the kind discriminator is required.
        """
        with self.assertRaises(DecodeError):
            ResourceDecoder().decode_posts_response({'data': {'children': []}})

    def test_missing_children_is_empty_listing(self) -> None:
        """
        Checks that a listing without `children` decodes to zero posts.
        """
        response: PostsResponse = ResourceDecoder().decode_posts_response({'kind': 'Listing', 'data': {}})
        self.assertIsNone(response.node.children)
        self.assertEqual(response.posts, ())

    def test_malformed_children_is_empty_listing(self) -> None:
        """
        Checks that a `children` value of the wrong shape is treated as absent.
        """
        raw: dict[str, object] = {'kind': 'Listing', 'data': {'children': ['not-an-object']}}
        response: PostsResponse = ResourceDecoder().decode_posts_response(raw)
        self.assertEqual(response.posts, ())


class TestDecodeComments(unittest.TestCase):
    """
    Tests comment decoding, including the two-element comment-page shape.
    """

    def test_decodes_comment_page_fixture(self) -> None:
        """
        Checks the echoed post and the top level of the comment tree.
        """
        response: CommentsResponse = ResourceDecoder().decode_comments_response(load_fixture('comments_p1.json'))
        self.assertEqual(response.post.id, 'p1')
        top_level: tuple[Comment, ...] = response.comment_tree.items
        self.assertEqual(len(top_level), 3)
        self.assertEqual(top_level[0], Comment(body='httpx, easily.', score=42))
        self.assertIsNotNone(top_level[0].replies)
        self.assertEqual(len(top_level[0].replies.items), 2)  # type: ignore[union-attr]

    def test_bad_score_keeps_body(self) -> None:
        """
        Checks that an unparseable score is absent while the body survives.
        """
        response: CommentsResponse = ResourceDecoder().decode_comments_response(load_fixture('comments_p1.json'))
        tqdm_comment: Comment = response.comment_tree.items[1]
        self.assertEqual(tqdm_comment.body, 'tqdm')
        self.assertIsNone(tqdm_comment.score)

    def test_empty_string_replies_is_absent(self) -> None:
        """
        Checks reddit's `replies: ""` convention for leaf comments.
        """
        computed: Comment = ResourceDecoder().decode_comment({'body': 'x', 'score': 1, 'replies': ''})
        self.assertIsNone(computed.replies)

    def test_more_stub_decodes_to_empty_comment(self) -> None:
        """
        Checks that a "more" placeholder is still a valid (contentless) comment.
        """
        response: CommentsResponse = ResourceDecoder().decode_comments_response(load_fixture('comments_p1.json'))
        stub: Comment = response.comment_tree.items[2]
        self.assertEqual(stub, Comment())
        self.assertFalse(stub.has_content)

    def test_short_response_fails(self) -> None:
        """
        Checks that fewer than two elements is a corrupt response.
        """
        raw: list[object] = load_fixture('comments_p1.json')[:1]  # type: ignore[index]
        with self.assertRaises(DecodeError):
            ResourceDecoder().decode_comments_response(raw)
        with self.assertRaises(DecodeError):
            ResourceDecoder().decode_comments_response({'kind': 'Listing'})

    def test_missing_echoed_post_fails(self) -> None:
        """
        Checks that a comment page without its post is a decode error, not an empty tree.
        """
        raw: list[object] = [
            {'kind': 'Listing', 'data': {'children': []}},
            {'kind': 'Listing', 'data': {'children': []}},
        ]
        with self.assertRaises(DecodeError):
            ResourceDecoder().decode_comments_response(raw)

    def test_depth_guard(self) -> None:
        """
        Checks that nesting beyond max_depth raises StructuralError instead of being dropped.
        """
        decoder = ResourceDecoder(max_depth=5)
        tree: Node[Comment] = decoder.decode_comment_node(nested_comment_json(6))
        self.assertEqual(tree.items[0].body, 'level 0')
        with self.assertRaises(StructuralError):
            decoder.decode_comment_node(nested_comment_json(7))


class TestFieldDecoders(unittest.TestCase):
    """
    Tests the small per-field decoders.
    """

    def test_decode_int(self) -> None:
        """
        Checks accepted and rejected score values.
        """
        self.assertEqual(decode_int(5), 5)
        self.assertEqual(decode_int(-2), -2)
        self.assertEqual(decode_int(5.0), 5)
        for bad in (True, 5.5, '5', None):
            with self.assertRaises(DecodeError):
                decode_int(bad)


if __name__ == '__main__':
    unittest.main()
