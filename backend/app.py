import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from config import Config
from errors import register_error_handlers
from supabase_client import init_supabase
from routes.auth import auth_bp
from routes.posts import posts_bp
from votes import KeyedLocks

def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)

def create_app(config_object=Config, supabase_client=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    # Tests either hand in a client or run with TESTING and no Supabase at all
    if supabase_client is None and not app.config.get('TESTING'):
        if not app.config.get('SUPABASE_URL'):
            raise ValueError("SUPABASE_URL environment variable is required!")
        if not app.config.get('SUPABASE_KEY'):
            raise ValueError("SUPABASE_KEY environment variable is required!")

    # Initialize extensions
    CORS(app, supports_credentials=True)
    JWTManager(app)
    register_error_handlers(app)

    # Initialize Supabase client
    if supabase_client is not None or not app.config.get('TESTING'):
        init_supabase(app, supabase_client)
    app.extensions['vote_locks'] = KeyedLocks()
    app.logger.info('Using Supabase project %s', app.config['SUPABASE_URL'])

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(posts_bp, url_prefix='/api')

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'}), 200

    return app

if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=True)
