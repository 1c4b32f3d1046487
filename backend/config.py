import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    # Supabase configuration
    # Get these from: Supabase Dashboard > Settings > API
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY')

    # JWT configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'your-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    # Signs the session cookie that carries the vote cache and post cooldown
    SECRET_KEY = os.getenv('SECRET_KEY', 'your-session-key-change-in-production')

    # CORS configuration
    CORS_HEADERS = 'Content-Type'

    # Board settings
    POST_COOLDOWN_SECONDS = int(os.getenv('POST_COOLDOWN_SECONDS', '60'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    TESTING = False


class TestConfig(Config):
    TESTING = True
    SUPABASE_URL = 'http://localhost:54321'
    SUPABASE_KEY = 'test-key'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    SECRET_KEY = 'test-session-key'
    POST_COOLDOWN_SECONDS = 60
