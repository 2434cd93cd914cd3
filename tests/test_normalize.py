# tests/test_normalize.py
from __future__ import annotations

import unittest

from ig_profile.normalize import (
    coerce_int,
    locate_user,
    normalize_user_payload,
    post_summary_from_edge,
)


def _graphql_payload() -> dict:
    return {
        "graphql": {
            "user": {
                "full_name": "Jane Doe",
                "username": "jane",
                "profile_pic_url": "https://cdn.example.com/jane.jpg",
                "edge_followed_by": {"count": 1200},
                "edge_follow": {"count": 80},
                "edge_owner_to_timeline_media": {
                    "count": 3,
                    "edges": [
                        {
                            "node": {
                                "id": "111",
                                "shortcode": "AAA",
                                "edge_liked_by": {"count": 10},
                                "edge_media_to_comment": {"count": 2},
                                "taken_at_timestamp": 1700000000,
                            }
                        },
                        {
                            "node": {
                                "id": "222",
                                "shortcode": "BBB",
                                "edge_media_preview_like": {"count": 20},
                                "comment_count": 4,
                            }
                        },
                        {"node": {"id": "333", "shortcode": "CCC"}},
                    ],
                },
            }
        }
    }


class TestNormalize(unittest.TestCase):
    def test_extracts_primary_graphql_shape(self) -> None:
        user = normalize_user_payload(_graphql_payload())
        self.assertIsNotNone(user)
        assert user is not None

        self.assertEqual(user.display_name, "Jane Doe")
        self.assertEqual(user.username, "jane")
        self.assertEqual(user.profile_picture_url, "https://cdn.example.com/jane.jpg")
        self.assertEqual(user.follower_count, 1200)
        self.assertEqual(user.following_count, 80)
        self.assertEqual(user.post_count, 3)
        self.assertEqual([p.id for p in user.posts], ["111", "222", "333"])
        self.assertEqual([p.shortcode for p in user.posts], ["AAA", "BBB", "CCC"])
        self.assertEqual(user.posts[0].like_count, 10)
        self.assertEqual(user.posts[0].timestamp, 1700000000)
        self.assertEqual(user.posts[1].like_count, 20)
        self.assertEqual(user.posts[1].comment_count, 4)

    def test_missing_likes_normalize_to_none(self) -> None:
        user = normalize_user_payload(_graphql_payload())
        assert user is not None
        self.assertIsNone(user.posts[2].like_count)
        self.assertIsNone(user.posts[2].comment_count)

    def test_flat_follower_fields(self) -> None:
        payload = {
            "data": {
                "user": {
                    "name": "Flat",
                    "username": "flat",
                    "followers": 1200,
                    "following": "15",
                    "media_count": 9,
                    "media": [{"code": "XYZ", "like_count": 3}],
                }
            }
        }
        user = normalize_user_payload(payload)
        assert user is not None

        self.assertEqual(user.display_name, "Flat")
        self.assertEqual(user.follower_count, 1200)
        self.assertEqual(user.following_count, 15)
        self.assertEqual(user.post_count, 9)
        self.assertEqual(user.posts[0].id, "XYZ")
        self.assertEqual(user.posts[0].shortcode, "XYZ")

    def test_zero_counts_are_values(self) -> None:
        payload = {"graphql": {"user": {"username": "new", "edge_followed_by": {"count": 0}, "edge_follow": {"count": 0}}}}
        user = normalize_user_payload(payload)
        assert user is not None
        self.assertEqual(user.follower_count, 0)
        self.assertEqual(user.following_count, 0)
        self.assertTrue(user.has_follow_counts)

    def test_loose_count_formats(self) -> None:
        cases = [
            (1234, 1234),
            (1234.0, 1234),
            (12.7, 12),
            ("1,234", 1234),
            (" 5 ", 5),
            ("1_000", 1000),
            (float("nan"), None),
            (float("inf"), None),
            ("12k", None),
            (True, None),
        ]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                self.assertEqual(coerce_int(raw), expected)

    def test_formatted_follower_string_does_not_fall_through(self) -> None:
        payload = {
            "data": {
                "user": {
                    "username": "big",
                    "edge_followed_by": {"count": "1,234,567"},
                    "followers": 1,
                    "edge_follow": {"count": 12.0},
                }
            }
        }
        user = normalize_user_payload(payload)
        assert user is not None
        self.assertEqual(user.follower_count, 1234567)
        self.assertEqual(user.following_count, 12)

    def test_entry_data_profile_page(self) -> None:
        payload = {
            "entry_data": {
                "ProfilePage": [{"graphql": {"user": {"username": "old_style"}}}]
            }
        }
        user = normalize_user_payload(payload)
        assert user is not None
        self.assertEqual(user.username, "old_style")
        self.assertEqual(user.posts, ())

    def test_shallow_scan_finds_signature_object(self) -> None:
        payload = {
            "status": "ok",
            "profile": {"username": "scanned", "edge_followed_by": {"count": 5}},
        }
        user = locate_user(payload)
        self.assertEqual(user, payload["profile"])

    def test_posts_without_identifier_are_dropped(self) -> None:
        payload = {
            "data": {
                "user": {
                    "username": "x",
                    "edge_owner_to_timeline_media": {
                        "edges": [{"node": {"like_count": 4}}, {"node": {"id": 7}}, "junk"]
                    },
                }
            }
        }
        user = normalize_user_payload(payload)
        assert user is not None
        self.assertEqual([p.id for p in user.posts], ["7"])

    def test_edge_without_node_wrapper(self) -> None:
        post = post_summary_from_edge({"id": "9", "like_count": 1, "taken_at": 12})
        assert post is not None
        self.assertEqual(post.id, "9")
        self.assertEqual(post.timestamp, 12)

    def test_returns_none_without_user(self) -> None:
        self.assertIsNone(normalize_user_payload({"status": "ok", "data": {"viewer": None}}))
        self.assertIsNone(normalize_user_payload({}))
        self.assertIsNone(normalize_user_payload(["not", "a", "mapping"]))


if __name__ == "__main__":
    unittest.main()
