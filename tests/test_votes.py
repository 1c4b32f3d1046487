from __future__ import annotations

import threading
import unittest
from unittest import mock

from board_store import BoardStore
from errors import AuthorizationRequired, RemoteStoreError, ValidationError
from fake_supabase import FakeSupabase
from models import Category, Polarity, TargetKind
from session_state import SessionState, VoteCache
from votes import KeyedLocks, VoteReconciler


class VoteReconcilerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = FakeSupabase()
        self.store = BoardStore(self.db)
        self.post = self.store.create_post("Coding club", "Let's start one", Category.IDEA)
        self.reconciler = VoteReconciler(self.store)
        self.state = SessionState()
        self.cache = VoteCache(self.state, "u1")

    def toggle(self, polarity: str, viewer: str = "u1"):
        return self.reconciler.toggle(
            self.post.id, TargetKind.POST, polarity, viewer,
            cache=VoteCache(self.state, viewer),
        )

    def viewer_rows(self, viewer: str) -> list[dict]:
        return [row for row in self.db.rows("votes") if row["user_id"] == viewer]

    def test_like_adds_one_vote(self) -> None:
        outcome = self.toggle("like")
        self.assertIs(outcome.polarity, Polarity.LIKE)
        self.assertEqual((outcome.likes, outcome.dislikes), (1, 0))
        self.assertIs(self.cache.get(self.post.id, TargetKind.POST), Polarity.LIKE)

    def test_same_polarity_twice_restores_counts(self) -> None:
        self.toggle("dislike", viewer="u2")
        before = self.store.count_votes(self.post.id, TargetKind.POST)

        self.toggle("like")
        outcome = self.toggle("like")

        self.assertIsNone(outcome.polarity)
        self.assertEqual((outcome.likes, outcome.dislikes), before)
        self.assertEqual(self.viewer_rows("u1"), [])
        self.assertIsNone(self.cache.get(self.post.id, TargetKind.POST))

    def test_switching_polarity_replaces_vote(self) -> None:
        self.toggle("like")
        outcome = self.toggle("dislike")

        self.assertIs(outcome.polarity, Polarity.DISLIKE)
        self.assertEqual((outcome.likes, outcome.dislikes), (0, 1))
        rows = self.viewer_rows("u1")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["polarity"], "dislike")
        self.assertIs(self.cache.get(self.post.id, TargetKind.POST), Polarity.DISLIKE)

    def test_counts_match_recorded_votes(self) -> None:
        script = [
            ("u1", "like"), ("u2", "like"), ("u3", "dislike"), ("u2", "dislike"),
            ("u1", "like"), ("u4", "like"), ("u3", "dislike"), ("u3", "like"),
        ]
        for viewer, polarity in script:
            outcome = self.toggle(polarity, viewer=viewer)
            rows = self.db.rows("votes")
            self.assertEqual(outcome.likes, sum(1 for r in rows if r["polarity"] == "like"))
            self.assertEqual(outcome.dislikes, sum(1 for r in rows if r["polarity"] == "dislike"))

        per_viewer: dict[str, int] = {}
        for row in self.db.rows("votes"):
            per_viewer[row["user_id"]] = per_viewer.get(row["user_id"], 0) + 1
        self.assertTrue(all(count == 1 for count in per_viewer.values()))

    def test_anonymous_viewer_is_rejected(self) -> None:
        with self.assertRaises(AuthorizationRequired):
            self.toggle("like", viewer=None)
        self.assertEqual(self.db.rows("votes"), [])
        self.assertIsNone(self.cache.get(self.post.id, TargetKind.POST))

    def test_unknown_polarity_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.toggle("love")

    def test_failed_add_leaves_cache_untouched(self) -> None:
        self.db.fail("votes", "insert")
        with self.assertRaises(RemoteStoreError):
            self.toggle("like")
        self.assertEqual(self.db.rows("votes"), [])
        self.assertIsNone(self.cache.get(self.post.id, TargetKind.POST))

    def test_failed_switch_restores_previous_vote(self) -> None:
        self.toggle("like")
        # The removal succeeds, the new row is refused, and so is the restore
        self.db.fail("votes", "insert")
        with self.assertRaises(RemoteStoreError):
            self.toggle("dislike")
        self.assertIs(self.cache.get(self.post.id, TargetKind.POST), Polarity.LIKE)

        self.db.heal()
        outcome = self.toggle("dislike")
        self.assertEqual((outcome.likes, outcome.dislikes), (0, 1))

    def test_cache_written_even_if_count_read_back_fails(self) -> None:
        with mock.patch.object(self.store, "count_votes", side_effect=RemoteStoreError("down")):
            with self.assertRaises(RemoteStoreError):
                self.toggle("like")
        self.assertEqual(len(self.viewer_rows("u1")), 1)
        self.assertIs(self.cache.get(self.post.id, TargetKind.POST), Polarity.LIKE)

    def test_comment_votes_use_their_own_cache_key(self) -> None:
        comment = self.store.create_comment(self.post.id, "Agreed")
        self.reconciler.toggle(comment.id, TargetKind.COMMENT, "like", "u1", cache=self.cache)
        self.assertIs(self.cache.get(comment.id, TargetKind.COMMENT), Polarity.LIKE)
        self.assertIsNone(self.cache.get(self.post.id, TargetKind.POST))

    def test_concurrent_toggles_do_not_double_count(self) -> None:
        locks = KeyedLocks()
        errors: list[Exception] = []

        def worker() -> None:
            try:
                VoteReconciler(self.store, locks=locks).toggle(
                    self.post.id, TargetKind.POST, "like", "u1"
                )
            except Exception as e:  # pragma: no cover - surfaced through the assert
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        # Four serialized toggles of the same polarity end where they started
        self.assertEqual(self.viewer_rows("u1"), [])


class KeyedLocksTests(unittest.TestCase):
    def test_lock_released_after_use(self) -> None:
        locks = KeyedLocks()
        with locks.hold("a"):
            self.assertIn("a", locks._locks)
        self.assertNotIn("a", locks._locks)


if __name__ == "__main__":
    unittest.main()
