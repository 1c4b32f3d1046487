from supabase import create_client, Client
from flask import current_app, g

from board_store import BoardStore

def init_supabase(app, client=None):
    """Initialize Supabase client; a client handed in is used as-is"""
    if client is None:
        client = create_client(app.config['SUPABASE_URL'], app.config['SUPABASE_KEY'])
    app.extensions['supabase'] = client
    return client

def get_supabase() -> Client:
    """Get Supabase client for current request"""
    if 'supabase' not in g:
        g.supabase = current_app.extensions.get('supabase') or create_client(
            current_app.config['SUPABASE_URL'],
            current_app.config['SUPABASE_KEY']
        )
    return g.supabase

def get_store() -> BoardStore:
    """Board store over the request's Supabase client"""
    if 'board_store' not in g:
        g.board_store = BoardStore(get_supabase())
    return g.board_store
