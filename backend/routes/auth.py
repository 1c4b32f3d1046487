from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity, get_jwt
from werkzeug.security import generate_password_hash, check_password_hash
from board_store import run_query
from supabase_client import get_supabase

auth_bp = Blueprint('auth', __name__)

def _issue_token(user):
    return create_access_token(
        identity=str(user['id']),
        additional_claims={'username': user['username']}
    )

@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password')

    if not username or not password:
        return jsonify({'error': 'Username and password are required'}), 400

    supabase = get_supabase()

    # Check if user exists
    response = run_query(supabase.table('users').select('id').eq('username', username), 'look up user')
    if response.data:
        return jsonify({'error': 'Username already exists'}), 409

    # Create user
    password_hash = generate_password_hash(password)
    response = run_query(supabase.table('users').insert({
        'username': username,
        'password_hash': password_hash
    }), 'create user')
    user = response.data[0]
    current_app.logger.info('Registered user %s', user['id'])

    return jsonify({
        'message': 'User created successfully',
        'access_token': _issue_token(user),
        'username': username
    }), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password')

    if not username or not password:
        return jsonify({'error': 'Username and password are required'}), 400

    supabase = get_supabase()

    # Find user
    response = run_query(supabase.table('users').select('*').eq('username', username), 'look up user')

    if not response.data:
        return jsonify({'error': 'Invalid username or password'}), 401

    user = response.data[0]

    if not check_password_hash(user['password_hash'], password):
        return jsonify({'error': 'Invalid username or password'}), 401

    return jsonify({'access_token': _issue_token(user), 'username': username}), 200

@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    return jsonify({
        'id': get_jwt_identity(),
        'username': get_jwt().get('username')
    }), 200
