"""
Board store backed by Supabase tables.

Tables: posts, comments, votes, reports. Like/dislike counts are never stored;
they are counted from the votes table whenever posts are loaded.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import httpx
from supabase import Client, PostgrestAPIError

from errors import NotFound, RemoteStoreError, ValidationError
from models import Category, Comment, Polarity, Post, TargetKind, Vote

logger = logging.getLogger(__name__)


def run_query(query, action):
    """Run a query builder, turning Supabase and network failures into RemoteStoreError"""
    try:
        return query.execute()
    except PostgrestAPIError as e:
        detail = getattr(e, 'message', None) or str(e)
        logger.warning('Supabase rejected %s: %s', action, detail)
        raise RemoteStoreError(f'Could not {action}: {detail}') from e
    except httpx.HTTPError as e:
        logger.warning('Supabase unreachable during %s: %s', action, e)
        raise RemoteStoreError(f'Could not {action}: store unavailable') from e


def _count_votes(vote_rows) -> Dict[Tuple[str, str], Dict[str, int]]:
    counts = defaultdict(lambda: {Polarity.LIKE.value: 0, Polarity.DISLIKE.value: 0})
    for row in vote_rows:
        counts[(row['target_kind'], str(row['target_id']))][row['polarity']] += 1
    return counts


def _root_of(comment_id, parents):
    """Follow parent links up to the top-level comment"""
    seen = set()
    current = comment_id
    while parents.get(current) is not None and current not in seen:
        seen.add(current)
        current = parents[current]
    return current


def assemble_posts(post_rows, comment_rows, vote_rows) -> List[Post]:
    """Build Post objects with nested comments and vote counts from raw rows"""
    counts = _count_votes(vote_rows)

    comments_by_id = {}
    parents = {}
    for row in comment_rows:
        comment = Comment.from_row(row)
        tally = counts.get((TargetKind.COMMENT.value, comment.id))
        if tally:
            comment.likes = tally[Polarity.LIKE.value]
            comment.dislikes = tally[Polarity.DISLIKE.value]
        comments_by_id[comment.id] = comment
        parents[comment.id] = comment.parent_id

    # Replies hang off their top-level comment, one level deep
    threads = defaultdict(list)
    for comment in comments_by_id.values():
        if comment.parent_id is None or comment.parent_id not in comments_by_id:
            threads[comment.post_id].append(comment)
        else:
            root = comments_by_id[_root_of(comment.id, parents)]
            root.replies.append(comment)

    posts = []
    for row in post_rows:
        post = Post.from_row(row)
        tally = counts.get((TargetKind.POST.value, post.id))
        if tally:
            post.likes = tally[Polarity.LIKE.value]
            post.dislikes = tally[Polarity.DISLIKE.value]
        post.comments = threads.get(post.id, [])
        posts.append(post)
    return posts


class BoardStore:
    def __init__(self, client: Client):
        self.client = client

    # ---------- Posts ----------

    def create_post(self, title, content, category, author=None, user_id=None) -> Post:
        category = Category.parse(category)
        response = run_query(
            self.client.table('posts').insert({
                'title': title,
                'content': content,
                'category': category.value,
                'author': author,
                'user_id': user_id,
            }),
            'create post',
        )
        if not response.data:
            raise RemoteStoreError('Could not create post: store returned no row')
        post = Post.from_row(response.data[0])
        logger.info('Created post %s in %s', post.id, post.category.value)
        return post

    def list_posts(self) -> List[Post]:
        post_rows = run_query(
            self.client.table('posts').select('*').order('created_at', desc=True),
            'list posts',
        ).data
        if not post_rows:
            return []
        post_ids = [str(row['id']) for row in post_rows]
        comment_rows = run_query(
            self.client.table('comments').select('*').in_('post_id', post_ids).order('created_at'),
            'list comments',
        ).data
        target_ids = post_ids + [str(row['id']) for row in comment_rows]
        vote_rows = run_query(
            self.client.table('votes').select('target_id,target_kind,polarity').in_('target_id', target_ids),
            'list votes',
        ).data
        return assemble_posts(post_rows, comment_rows, vote_rows)

    def get_post(self, post_id) -> Post:
        post_rows = run_query(
            self.client.table('posts').select('*').eq('id', post_id),
            'load post',
        ).data
        if not post_rows:
            raise NotFound('Post not found')
        comment_rows = run_query(
            self.client.table('comments').select('*').eq('post_id', post_id).order('created_at'),
            'list comments',
        ).data
        target_ids = [str(post_id)] + [str(row['id']) for row in comment_rows]
        vote_rows = run_query(
            self.client.table('votes').select('target_id,target_kind,polarity').in_('target_id', target_ids),
            'list votes',
        ).data
        return assemble_posts(post_rows, comment_rows, vote_rows)[0]

    def delete_post(self, post_id):
        """Delete a post with its comments, replies, reports and every vote on them"""
        comment_rows = run_query(
            self.client.table('comments').select('id').eq('post_id', post_id),
            'list comments',
        ).data
        comment_ids = [str(row['id']) for row in comment_rows]

        # The post row goes first: if that fails nothing else has been touched.
        # Later failures can only leave orphaned rows behind, never lose votes
        # on a post that still exists.
        run_query(self.client.table('posts').delete().eq('id', post_id), 'delete post')
        if comment_ids:
            run_query(
                self.client.table('votes').delete()
                .eq('target_kind', TargetKind.COMMENT.value)
                .in_('target_id', comment_ids),
                'delete comment votes',
            )
        run_query(
            self.client.table('votes').delete()
            .eq('target_kind', TargetKind.POST.value)
            .eq('target_id', post_id),
            'delete post votes',
        )
        run_query(self.client.table('reports').delete().eq('post_id', post_id), 'delete reports')
        run_query(self.client.table('comments').delete().eq('post_id', post_id), 'delete comments')
        logger.info('Deleted post %s with %d comments', post_id, len(comment_ids))

    def report_post(self, post_id, user_id=None, reason=None):
        run_query(
            self.client.table('reports').insert({
                'post_id': post_id,
                'user_id': user_id,
                'reason': reason,
            }),
            'report post',
        )
        logger.info('Post %s reported', post_id)

    # ---------- Comments ----------

    def create_comment(self, post_id, content, author=None, user_id=None, parent_id=None) -> Comment:
        if parent_id is not None:
            parent_rows = run_query(
                self.client.table('comments').select('id,post_id,parent_id').eq('id', parent_id),
                'load parent comment',
            ).data
            if not parent_rows or str(parent_rows[0]['post_id']) != str(post_id):
                raise NotFound('Comment to reply to not found')
            # Replies are one level deep
            if parent_rows[0].get('parent_id') is not None:
                parent_id = str(parent_rows[0]['parent_id'])

        response = run_query(
            self.client.table('comments').insert({
                'post_id': post_id,
                'parent_id': parent_id,
                'content': content,
                'author': author,
                'user_id': user_id,
            }),
            'create comment',
        )
        if not response.data:
            raise RemoteStoreError('Could not create comment: store returned no row')
        return Comment.from_row(response.data[0])

    def comment_exists(self, comment_id) -> bool:
        rows = run_query(
            self.client.table('comments').select('id').eq('id', comment_id),
            'load comment',
        ).data
        return bool(rows)

    # ---------- Votes ----------

    def add_vote(self, target_id, target_kind, polarity, user_id):
        if not user_id:
            raise ValidationError('A vote needs a viewer')
        run_query(
            self.client.table('votes').insert({
                'user_id': user_id,
                'target_id': target_id,
                'target_kind': TargetKind(target_kind).value,
                'polarity': Polarity(polarity).value,
            }),
            'add vote',
        )

    def remove_vote(self, target_id, target_kind, polarity, user_id):
        run_query(
            self.client.table('votes').delete()
            .eq('user_id', user_id)
            .eq('target_id', target_id)
            .eq('target_kind', TargetKind(target_kind).value)
            .eq('polarity', Polarity(polarity).value),
            'remove vote',
        )

    def get_vote(self, target_id, target_kind, user_id) -> Optional[Polarity]:
        rows = run_query(
            self.client.table('votes').select('*')
            .eq('user_id', user_id)
            .eq('target_id', target_id)
            .eq('target_kind', TargetKind(target_kind).value),
            'load vote',
        ).data
        if not rows:
            return None
        return Vote.from_row(rows[0]).polarity

    def count_votes(self, target_id, target_kind) -> Tuple[int, int]:
        rows = run_query(
            self.client.table('votes').select('polarity')
            .eq('target_id', target_id)
            .eq('target_kind', TargetKind(target_kind).value),
            'count votes',
        ).data
        likes = sum(1 for row in rows if row['polarity'] == Polarity.LIKE.value)
        return likes, len(rows) - likes

    def get_viewer_votes(self, user_id) -> Dict[Tuple[str, str], Polarity]:
        """Every vote the viewer holds, keyed by (target_kind, target_id)"""
        rows = run_query(
            self.client.table('votes').select('*').eq('user_id', user_id),
            'load viewer votes',
        ).data
        votes = {}
        for row in rows:
            vote = Vote.from_row(row)
            votes[(vote.target_kind.value, vote.target_id)] = vote.polarity
        return votes
