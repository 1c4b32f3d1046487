"""
Like/dislike toggling.

A viewer holds at most one polarity per target. Toggling the polarity already
held clears it; toggling the other one swaps it (old row removed first, then
the new one added). Counts are read back from the store afterwards, so what
the viewer sees is always the number of recorded votes.
"""
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from errors import AuthorizationRequired, RemoteStoreError
from models import Polarity, TargetKind

logger = logging.getLogger(__name__)


@dataclass
class VoteOutcome:
    target_id: str
    target_kind: TargetKind
    polarity: Optional[Polarity]
    likes: int
    dislikes: int

    def to_dict(self):
        return {
            'target_id': self.target_id,
            'target_kind': self.target_kind.value,
            'viewer_vote': self.polarity.value if self.polarity else None,
            'likes': self.likes,
            'dislikes': self.dislikes,
        }


class KeyedLocks:
    """One lock per key, dropped again once nobody holds or waits on it"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}
        self._users = defaultdict(int)

    @contextmanager
    def hold(self, key):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] += 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]


class VoteReconciler:
    def __init__(self, store, locks=None):
        self.store = store
        # Shared across requests so toggles on one target never overlap
        self._locks = locks if locks is not None else KeyedLocks()

    def toggle(self, target_id, target_kind, polarity, viewer, cache=None) -> VoteOutcome:
        if not viewer:
            raise AuthorizationRequired('Sign in to vote')
        target_id = str(target_id)
        target_kind = TargetKind(target_kind)
        polarity = Polarity.parse(polarity)

        with self._locks.hold((str(viewer), target_kind, target_id)):
            current = self.store.get_vote(target_id, target_kind, viewer)

            if current is polarity:
                self.store.remove_vote(target_id, target_kind, polarity, viewer)
                result = None
            elif current is None:
                self.store.add_vote(target_id, target_kind, polarity, viewer)
                result = polarity
            else:
                self.store.remove_vote(target_id, target_kind, current, viewer)
                try:
                    self.store.add_vote(target_id, target_kind, polarity, viewer)
                except RemoteStoreError:
                    self._restore(target_id, target_kind, current, viewer)
                    raise
                result = polarity

            # The store has changed by now; remember it even if the read-back fails
            if cache is not None:
                cache.set(target_id, target_kind, result)
            likes, dislikes = self.store.count_votes(target_id, target_kind)

        logger.info(
            'Viewer %s %s %s %s -> %s',
            viewer, target_kind.value, target_id, polarity.value,
            result.value if result else 'cleared',
        )
        return VoteOutcome(target_id, target_kind, result, likes, dislikes)

    def _restore(self, target_id, target_kind, polarity, viewer):
        try:
            self.store.add_vote(target_id, target_kind, polarity, viewer)
        except RemoteStoreError:
            logger.exception(
                'Could not restore %s vote on %s %s for viewer %s',
                polarity.value, target_kind.value, target_id, viewer,
            )
