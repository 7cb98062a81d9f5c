import os

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(os.path.dirname(basedir), '.env'))


def _env_float(name, default):
    return float(os.environ.get(name, default))


def _normalize_database_url(database_url):
    # Hosted Postgres providers still hand out the old scheme
    if database_url and database_url.startswith('postgres://'):
        return database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


class Config:
    """Base configuration shared by every environment"""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    SQLALCHEMY_DATABASE_URI = None  # Set in __init__
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 3600,
        'pool_pre_ping': True,
        'pool_size': 10,
        'max_overflow': 20,
        'pool_timeout': 30,
    }

    CORS_ORIGINS = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]
    CORS_SUPPORTS_CREDENTIALS = False

    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 2 * 1024 * 1024))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # --- Estimating defaults ---
    DEFAULT_OVERHEAD_PERCENT = _env_float('DEFAULT_OVERHEAD_PERCENT', 10.0)
    DEFAULT_PROFIT_PERCENT = _env_float('DEFAULT_PROFIT_PERCENT', 15.0)
    DEFAULT_TAX_PERCENT = _env_float('DEFAULT_TAX_PERCENT', 0.0)
    MAX_OVERHEAD_PERCENT = _env_float('MAX_OVERHEAD_PERCENT', 50.0)
    MAX_PROFIT_PERCENT = _env_float('MAX_PROFIT_PERCENT', 50.0)
    MAX_TAX_PERCENT = _env_float('MAX_TAX_PERCENT', 20.0)
    RANGE_LOW_MULTIPLIER = _env_float('RANGE_LOW_MULTIPLIER', 0.85)
    RANGE_HIGH_MULTIPLIER = _env_float('RANGE_HIGH_MULTIPLIER', 1.25)

    # 'items' taxes taxable line totals only, 'prorated_markup' adds their share of overhead and profit
    TAX_POLICY = os.environ.get('TAX_POLICY', 'items')
    # 'mean' scales the final price, 'per_category' scales unit costs
    GEOGRAPHIC_ADJUSTMENT_MODE = os.environ.get('GEOGRAPHIC_ADJUSTMENT_MODE', 'mean')

    QUICK_ESTIMATE_VALID_DAYS = int(os.environ.get('QUICK_ESTIMATE_VALID_DAYS', 30))
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Los_Angeles')

    COMPANY_NAME = os.environ.get('COMPANY_NAME', 'Roofing Estimator')

    def __init__(self):
        self.SQLALCHEMY_DATABASE_URI = self.get_database_url()

    @staticmethod
    def get_database_url():
        database_url = _normalize_database_url(os.environ.get('DATABASE_URL'))
        return database_url or 'sqlite:///' + os.path.join(os.path.dirname(basedir), 'instance', 'roofing.db')


class DevelopmentConfig(Config):
    """Local development"""
    DEBUG = True

    def __init__(self):
        super().__init__()
        dev_database_url = _normalize_database_url(os.environ.get('DEV_DATABASE_URL'))
        if dev_database_url:
            self.SQLALCHEMY_DATABASE_URI = dev_database_url

        self.CORS_ORIGINS = Config.CORS_ORIGINS + ['http://localhost:5173']
        if self.SQLALCHEMY_DATABASE_URI.startswith('sqlite'):
            # SQLite uses a static pool; sizing options are rejected
            self.SQLALCHEMY_ENGINE_OPTIONS = {}


class ProductionConfig(Config):
    DEBUG = False

    def __init__(self):
        super().__init__()

        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable is required for production")
        self.SECRET_KEY = secret_key

        database_url = _normalize_database_url(os.environ.get('DATABASE_URL'))
        if not database_url:
            raise ValueError("DATABASE_URL environment variable is required for production")
        self.SQLALCHEMY_DATABASE_URI = database_url

        origins = os.environ.get('CORS_ORIGINS')
        if origins:
            self.CORS_ORIGINS = [origin.strip() for origin in origins.split(',') if origin.strip()]

        self.SQLALCHEMY_ENGINE_OPTIONS = {
            **Config.SQLALCHEMY_ENGINE_OPTIONS,
            'pool_size': 20,
            'max_overflow': 30,
            'pool_timeout': 60,
        }


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret-key'

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.CORS_ORIGINS = ['*']
        # Tests pin the documented defaults regardless of the local .env
        self.DEFAULT_OVERHEAD_PERCENT = 10.0
        self.DEFAULT_PROFIT_PERCENT = 15.0
        self.DEFAULT_TAX_PERCENT = 0.0
        self.TAX_POLICY = 'items'
        self.GEOGRAPHIC_ADJUSTMENT_MODE = 'mean'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config_name():
    """Pick the environment from FLASK_ENV, falling back on hints from the process environment"""
    flask_env = os.environ.get('FLASK_ENV', '').lower()
    if flask_env in ('production', 'testing', 'development'):
        return flask_env

    if os.environ.get('TESTING') or os.environ.get('CI'):
        return 'testing'

    if os.environ.get('DATABASE_URL', '').startswith(('postgres://', 'postgresql://')):
        return 'production'

    return 'development'


__all__ = [
    'config',
    'get_config_name',
]
