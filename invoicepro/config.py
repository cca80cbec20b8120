import os


def get_db_path():
    # In production (Docker), use the mapped 'data' volume
    if os.environ.get('FLASK_ENV') == 'production':
        return os.path.join('/app', 'data', 'invoices.db')

    base_path = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(base_path, 'data', 'invoices.db')


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', f'sqlite:///{get_db_path()}')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')

    # 'remote' talks to the hosted identity service and the SQL store,
    # 'demo' uses the in-memory fixture identities and store.
    INVOICEPRO_BACKEND = os.environ.get('INVOICEPRO_BACKEND', 'remote')
    AUTH_API_URL = os.environ.get('AUTH_API_URL', '')
    AUTH_API_KEY = os.environ.get('AUTH_API_KEY', '')
    AUTH_API_TIMEOUT = float(os.environ.get('AUTH_API_TIMEOUT', '10'))

    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://127.0.0.1:5000')
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'USD')
    DEFAULT_PAYMENT_TERMS_DAYS = 30

    OVERDUE_CHECK_ENABLED = _env_flag('OVERDUE_CHECK_ENABLED', True)
    OVERDUE_CHECK_HOUR = int(os.environ.get('OVERDUE_CHECK_HOUR', '9'))
    SCHEDULER_API_ENABLED = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class ProductionConfig(Config):
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'testing'
    AUTH_API_URL = 'https://auth.example.test'
    AUTH_API_KEY = 'test-anon-key'
    PUBLIC_BASE_URL = 'https://invoices.example.test'
    OVERDUE_CHECK_ENABLED = False
