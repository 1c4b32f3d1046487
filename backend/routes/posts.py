from flask import Blueprint, current_app, jsonify, request, session
from flask_jwt_extended import get_jwt_identity, jwt_required, verify_jwt_in_request

from errors import AuthorizationRequired, Forbidden, NotFound, RemoteStoreError, ValidationError
from feed import SORT_POPULAR, compose_feed
from formatting import format_time_ago
from models import CATEGORY_DISPLAY, Category, TargetKind
from session_state import PostCooldown, SessionState, VoteCache
from supabase_client import get_store
from votes import VoteReconciler

posts_bp = Blueprint('posts', __name__)

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 5000
MAX_AUTHOR_LENGTH = 80


def current_viewer():
    """Signed-in viewer id, or None for anonymous readers"""
    verify_jwt_in_request(optional=True)
    return get_jwt_identity()


def require_viewer(message):
    viewer = current_viewer()
    if not viewer:
        raise AuthorizationRequired(message)
    return viewer


def session_state():
    return SessionState(session)


def get_reconciler():
    return VoteReconciler(get_store(), locks=current_app.extensions['vote_locks'])


def clean_text(data, field, required=True, max_length=None):
    value = data.get(field)
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be text')
    value = value.strip()
    if required and not value:
        raise ValidationError('Please fill in all required fields')
    if max_length and len(value) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters')
    return value or None


def viewer_vote(vote_of, kind, target_id):
    polarity = vote_of(kind, target_id)
    return polarity.value if polarity else None


def serialize_comment(comment, vote_of):
    return {
        'id': comment.id,
        'post_id': comment.post_id,
        'parent_id': comment.parent_id,
        'content': comment.content,
        'author': comment.author,
        'likes': comment.likes,
        'dislikes': comment.dislikes,
        'created_at': comment.created_at.isoformat() if comment.created_at else None,
        'time_ago': format_time_ago(comment.created_at),
        'viewer_vote': viewer_vote(vote_of, TargetKind.COMMENT, comment.id),
        'replies': [serialize_comment(r, vote_of) for r in comment.replies],
    }


def serialize_post(post, viewer, vote_of, with_comments=False):
    data = {
        'id': post.id,
        'title': post.title,
        'content': post.content,
        'category': post.category.value,
        'likes': post.likes,
        'dislikes': post.dislikes,
        'comments_count': post.comment_count,
        'author': post.author,
        'created_at': post.created_at.isoformat() if post.created_at else None,
        'time_ago': format_time_ago(post.created_at),
        'viewer_vote': viewer_vote(vote_of, TargetKind.POST, post.id),
        'can_delete': bool(viewer) and post.user_id == str(viewer),
    }
    if with_comments:
        data['comments'] = [
            serialize_comment(c, vote_of) for c in post.comments
        ]
    return data


def no_votes(kind, target_id):
    return None


def load_viewer_votes(store, viewer):
    """Lookup of the viewer's polarity per target, or no_votes for anonymous readers

    The store's rows are authoritative. The viewer's own session cache is only
    consulted when the store cannot say which votes the viewer holds.
    """
    if not viewer:
        return no_votes
    try:
        votes = store.get_viewer_votes(viewer)
    except RemoteStoreError:
        current_app.logger.warning('Falling back to cached votes for viewer %s', viewer)
        return VoteCache(session_state(), viewer).lookup
    return lambda kind, target_id: votes.get((kind.value, target_id))


@posts_bp.route('/categories', methods=['GET'])
def list_categories():
    return jsonify([
        {'value': category.value, 'label': label, 'icon': icon}
        for category, (label, icon) in CATEGORY_DISPLAY.items()
    ]), 200


@posts_bp.route('/posts', methods=['GET'])
def list_posts():
    sort = request.args.get('sort', SORT_POPULAR)
    category = request.args.get('category') or None
    viewer = current_viewer()
    store = get_store()

    posts = compose_feed(store.list_posts(), sort=sort, category=category)
    vote_of = load_viewer_votes(store, viewer)
    return jsonify([serialize_post(p, viewer, vote_of) for p in posts]), 200


@posts_bp.route('/posts', methods=['POST'])
def create_post():
    viewer = require_viewer('Sign in to create a post')
    data = request.get_json(silent=True) or {}

    title = clean_text(data, 'title', max_length=MAX_TITLE_LENGTH)
    content = clean_text(data, 'content', max_length=MAX_CONTENT_LENGTH)
    if not data.get('category'):
        raise ValidationError('Please fill in all required fields')
    category = Category.parse(data['category'])
    author = None
    if data.get('show_name'):
        author = clean_text(data, 'author', required=False, max_length=MAX_AUTHOR_LENGTH)

    cooldown = PostCooldown(
        session_state(), window_seconds=current_app.config['POST_COOLDOWN_SECONDS']
    )
    cooldown.check()

    post = get_store().create_post(title, content, category, author=author, user_id=viewer)
    cooldown.record()
    current_app.logger.info('Viewer %s created post %s', viewer, post.id)

    return jsonify(serialize_post(post, viewer, no_votes, with_comments=True)), 201


@posts_bp.route('/posts/<post_id>', methods=['GET'])
def get_post(post_id):
    viewer = current_viewer()
    store = get_store()
    post = store.get_post(post_id)
    vote_of = load_viewer_votes(store, viewer)
    return jsonify(serialize_post(post, viewer, vote_of, with_comments=True)), 200


@posts_bp.route('/posts/<post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id):
    viewer = get_jwt_identity()
    store = get_store()
    post = store.get_post(post_id)
    if post.user_id != str(viewer):
        raise Forbidden('Only the author can delete this post')
    store.delete_post(post_id)
    current_app.logger.info('Viewer %s deleted post %s', viewer, post_id)
    return jsonify({'message': 'Post deleted'}), 200


@posts_bp.route('/posts/<post_id>/comments', methods=['POST'])
def add_comment(post_id):
    viewer = require_viewer('Sign in to comment')
    data = request.get_json(silent=True) or {}
    content = clean_text(data, 'content', max_length=MAX_CONTENT_LENGTH)
    author = clean_text(data, 'author', required=False, max_length=MAX_AUTHOR_LENGTH)
    parent_id = data.get('parent_id')

    store = get_store()
    store.get_post(post_id)
    comment = store.create_comment(
        post_id, content, author=author, user_id=viewer,
        parent_id=str(parent_id) if parent_id is not None else None,
    )
    return jsonify(serialize_comment(comment, no_votes)), 201


@posts_bp.route('/posts/<post_id>/vote', methods=['POST'])
def vote_post(post_id):
    viewer = require_viewer('Sign in to vote')
    data = request.get_json(silent=True) or {}
    get_store().get_post(post_id)
    outcome = get_reconciler().toggle(
        post_id, TargetKind.POST, data.get('polarity'), viewer,
        cache=VoteCache(session_state(), viewer),
    )
    return jsonify(outcome.to_dict()), 200


@posts_bp.route('/comments/<comment_id>/vote', methods=['POST'])
def vote_comment(comment_id):
    viewer = require_viewer('Sign in to vote')
    data = request.get_json(silent=True) or {}
    if not get_store().comment_exists(comment_id):
        raise NotFound('Comment not found')
    outcome = get_reconciler().toggle(
        comment_id, TargetKind.COMMENT, data.get('polarity'), viewer,
        cache=VoteCache(session_state(), viewer),
    )
    return jsonify(outcome.to_dict()), 200


@posts_bp.route('/posts/<post_id>/report', methods=['POST'])
def report_post(post_id):
    viewer = current_viewer()
    data = request.get_json(silent=True) or {}
    reason = clean_text(data, 'reason', required=False, max_length=MAX_CONTENT_LENGTH)
    store = get_store()
    store.get_post(post_id)
    store.report_post(post_id, user_id=viewer, reason=reason)
    return jsonify({'message': 'Thanks for helping moderate the board'}), 201
