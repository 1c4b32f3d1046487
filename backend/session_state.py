"""
Per-session state: the viewer's vote cache and the post cooldown.

Both sit on top of SessionState, a small key/value wrapper. In the app it
wraps Flask's signed session cookie, so the state travels with the viewer's
session rather than living in module globals; tests hand it a plain dict.
"""
import math
import time

from errors import CooldownActive
from models import Polarity, TargetKind

LIKES_KEY = 'school_likes'
DISLIKES_KEY = 'school_dislikes'
LAST_POST_KEY = 'last_post_time'


class SessionState:
    def __init__(self, backing=None):
        self._data = backing if backing is not None else {}

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value
        # Flask's session does not see in-place changes to nested values
        if hasattr(self._data, 'modified'):
            self._data.modified = True

    def delete(self, key):
        if key in self._data:
            del self._data[key]
            if hasattr(self._data, 'modified'):
                self._data.modified = True


def cache_key(target_id, target_kind) -> str:
    if TargetKind(target_kind) is TargetKind.COMMENT:
        return f'comment-{target_id}'
    return str(target_id)


class VoteCache:
    """Remembers which targets one viewer liked or disliked

    Entries are kept under per-viewer keys, so a second account signing in on
    the same session never sees the first one's marks.
    """

    def __init__(self, state: SessionState, viewer):
        self.state = state
        self.viewer = str(viewer)

    def _key(self, prefix):
        return f'{prefix}:{self.viewer}'

    def _marks(self, prefix):
        return dict(self.state.get(self._key(prefix)) or {})

    def lookup(self, target_kind, target_id):
        return self.get(target_id, target_kind)

    def get(self, target_id, target_kind):
        key = cache_key(target_id, target_kind)
        if self._marks(LIKES_KEY).get(key):
            return Polarity.LIKE
        if self._marks(DISLIKES_KEY).get(key):
            return Polarity.DISLIKE
        return None

    def set(self, target_id, target_kind, polarity):
        key = cache_key(target_id, target_kind)
        likes = self._marks(LIKES_KEY)
        dislikes = self._marks(DISLIKES_KEY)
        likes.pop(key, None)
        dislikes.pop(key, None)
        if polarity is not None:
            polarity = Polarity(polarity)
            if polarity is Polarity.LIKE:
                likes[key] = True
            else:
                dislikes[key] = True
        self.state.set(self._key(LIKES_KEY), likes)
        self.state.set(self._key(DISLIKES_KEY), dislikes)


class PostCooldown:
    def __init__(self, state: SessionState, window_seconds=60, clock=time.time):
        self.state = state
        self.window_seconds = window_seconds
        self.clock = clock

    def remaining(self) -> float:
        last = self.state.get(LAST_POST_KEY)
        if last is None:
            return 0.0
        try:
            elapsed = self.clock() - float(last)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, self.window_seconds - elapsed)

    def check(self):
        remaining = self.remaining()
        if remaining > 0:
            raise CooldownActive(math.ceil(remaining))

    def record(self):
        self.state.set(LAST_POST_KEY, self.clock())
