import json
import unittest
from pathlib import Path

from comment_decoder import ResourceDecoder
from comment_flattener import CommentFlattener, flatten
from comment_models import DEFAULT_MAX_DEPTH, Comment, Node, StructuralError

TEST_DATA: Path = Path(__file__).parent / 'test_data'


def comment_tree_from_fixture() -> Node[Comment]:
    with (TEST_DATA / 'comments_p1.json').open('r', encoding='utf-8') as fh:
        raw: object = json.load(fh)
    return ResourceDecoder().decode_comments_response(raw).comment_tree


def chain(depth: int) -> Node[Comment]:
    """
    Builds a single chain of replies `depth` levels deep, innermost first.
    """
    node: Node[Comment] | None = None
    for level in reversed(range(depth)):
        node = Node(kind='Listing', children=(Comment(body=f'level {level}', score=level, replies=node),))
    assert node is not None
    return node


class TestCommentFlattener(unittest.TestCase):
    """
    Tests flattening comment trees into sets.
    """

    def test_flattens_fixture(self) -> None:
        """
        Checks that every nested comment is collected and the repeated reply collapses.
        """
        computed: set[Comment] = flatten(comment_tree_from_fixture())
        expected: set[Comment] = {
            Comment(body='httpx, easily.', score=42),
            Comment(body='agreed', score=7),
            Comment(body='requests still works fine for me', score=-3),
            Comment(body='tqdm', score=None),
            Comment(body=None, score=None),
        }
        self.assertEqual(computed, expected)

    def test_flatten_is_idempotent(self) -> None:
        """
        Checks that flattening the same tree twice gives equal, independent sets.
        """
        tree: Node[Comment] = comment_tree_from_fixture()
        flattener = CommentFlattener()
        first: set[Comment] = flattener.flatten(tree)
        second: set[Comment] = flattener.flatten(tree)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)

    def test_empty_and_absent(self) -> None:
        """
        Checks that a missing tree, or one without children, flattens to nothing.
        """
        self.assertEqual(flatten(None), set())
        self.assertEqual(flatten(Node(kind='Listing', children=None)), set())
        self.assertEqual(flatten(Node(kind='Listing', children=())), set())

    def test_identity_ignores_replies(self) -> None:
        """
        Checks that two comments with equal body+score but different replies dedupe to one.
        """
        reply = Comment(body='child', score=1)
        with_replies = Comment(body='same', score=3, replies=Node(kind='Listing', children=(reply,)))
        without_replies = Comment(body='same', score=3)
        tree: Node[Comment] = Node(kind='Listing', children=(with_replies, without_replies))
        computed: set[Comment] = flatten(tree)
        self.assertEqual(computed, {Comment(body='same', score=3), reply})

    def test_depth_guard(self) -> None:
        """
        Checks that a chain deeper than max_depth raises StructuralError.
        """
        self.assertEqual(len(CommentFlattener(max_depth=4).flatten(chain(5))), 5)
        with self.assertRaises(StructuralError):
            CommentFlattener(max_depth=4).flatten(chain(6))

    def test_default_depth_matches_decoder(self) -> None:
        """
        Checks that the flattener and the decoder share one default depth limit.
        """
        self.assertEqual(CommentFlattener().max_depth, DEFAULT_MAX_DEPTH)
        self.assertEqual(ResourceDecoder().max_depth, DEFAULT_MAX_DEPTH)


if __name__ == '__main__':
    unittest.main()
