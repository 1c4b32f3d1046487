"""Feed ordering and category filtering"""
from datetime import datetime, timezone
from typing import Iterable, List

from errors import ValidationError
from models import Category, Post

SORT_POPULAR = 'popular'
SORT_NEW = 'new'
SORT_MODES = (SORT_POPULAR, SORT_NEW)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created(post: Post) -> float:
    return (post.created_at or _EPOCH).timestamp()


def compose_feed(posts: Iterable[Post], sort: str = SORT_POPULAR, category=None) -> List[Post]:
    if sort not in SORT_MODES:
        raise ValidationError(f"sort must be one of: {', '.join(SORT_MODES)}")

    # Stable sorts: id first, then the secondary key, then the primary key
    ordered = sorted(posts, key=lambda p: p.id)
    ordered.sort(key=_created, reverse=True)
    if sort == SORT_POPULAR:
        ordered.sort(key=lambda p: p.likes, reverse=True)

    if category is None:
        return ordered
    wanted = Category.parse(category)
    return [post for post in ordered if post.category is wanted]
