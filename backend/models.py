"""
Data models for the board.
Rows come back from Supabase as plain dicts; these dataclasses give them
a shape and handle the conversion both ways.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from errors import ValidationError


class Category(str, Enum):
    IDEA = 'Idea'
    COMPLAINT = 'Complaint'
    PROBLEM = 'Problem'
    SUGGESTION = 'Suggestion'
    SUCCESS = 'Success'

    @classmethod
    def parse(cls, value) -> 'Category':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ', '.join(c.value for c in cls)
            raise ValidationError(f'Unknown category {value!r}, expected one of: {allowed}')


CATEGORY_DISPLAY = {
    Category.IDEA: ('Idea', '💡'),
    Category.COMPLAINT: ('Complaint', '😔'),
    Category.PROBLEM: ('Problem', '😐'),
    Category.SUGGESTION: ('Suggestion', '😊'),
    Category.SUCCESS: ('Success / Praise', '😍'),
}


class Polarity(str, Enum):
    LIKE = 'like'
    DISLIKE = 'dislike'

    @classmethod
    def parse(cls, value) -> 'Polarity':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError("polarity must be 'like' or 'dislike'")


class TargetKind(str, Enum):
    POST = 'post'
    COMMENT = 'comment'


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # Supabase returns ISO strings, sometimes with a trailing Z
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Vote:
    """Vote model - maps to Supabase votes table"""
    user_id: str
    target_id: str
    target_kind: TargetKind
    polarity: Polarity
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Vote':
        return cls(
            id=str(row['id']) if row.get('id') is not None else None,
            user_id=str(row['user_id']),
            target_id=str(row['target_id']),
            target_kind=TargetKind(row['target_kind']),
            polarity=Polarity(row['polarity']),
        )


@dataclass
class Comment:
    """Comment model - maps to Supabase comments table"""
    id: str
    post_id: str
    content: str = ''
    author: Optional[str] = None
    likes: int = 0
    dislikes: int = 0
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    parent_id: Optional[str] = None
    replies: List['Comment'] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict) -> 'Comment':
        return cls(
            id=str(row['id']),
            post_id=str(row['post_id']),
            content=row.get('content') or '',
            author=row.get('author'),
            created_at=parse_timestamp(row.get('created_at')),
            user_id=str(row['user_id']) if row.get('user_id') is not None else None,
            parent_id=str(row['parent_id']) if row.get('parent_id') is not None else None,
        )


@dataclass
class Post:
    """Post model - maps to Supabase posts table"""
    id: str
    title: str = ''
    content: str = ''
    category: Category = Category.IDEA
    likes: int = 0
    dislikes: int = 0
    author: Optional[str] = None
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    comments: List[Comment] = field(default_factory=list)

    @property
    def comment_count(self) -> int:
        return sum(1 + len(c.replies) for c in self.comments)

    @classmethod
    def from_row(cls, row: dict) -> 'Post':
        return cls(
            id=str(row['id']),
            title=row.get('title') or '',
            content=row.get('content') or '',
            category=Category(row['category']),
            author=row.get('author'),
            created_at=parse_timestamp(row.get('created_at')),
            user_id=str(row['user_id']) if row.get('user_id') is not None else None,
        )
