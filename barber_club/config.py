import os
import tempfile
from urllib.parse import urlparse

basedir = os.path.abspath(os.path.dirname(__file__))


def _is_vercel_runtime():
    return bool(os.environ.get('VERCEL') or os.environ.get('VERCEL_ENV'))


def _is_managed_runtime():
    return bool(
        os.environ.get('RAILWAY_ENVIRONMENT')
        or os.environ.get('RENDER')
        or _is_vercel_runtime()
    )


def _as_bool(value, default=False):
    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _first_env(*names):
    for name in names:
        value = (os.environ.get(name) or '').strip()
        if value:
            return value
    return ''


def _database_url():
    raw = (os.environ.get('DATABASE_URL') or '').strip()
    if raw.startswith('postgres://'):
        raw = raw.replace('postgres://', 'postgresql://', 1)
    if raw:
        return raw
    if _is_vercel_runtime():
        return 'sqlite:////tmp/barber.db'
    return 'sqlite:///' + os.path.join(basedir, 'barber.db')


def _database_engine_options(database_url):
    if database_url.startswith('sqlite'):
        return {}
    options = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    if urlparse(database_url).scheme.startswith('postgresql'):
        connect_timeout_seconds = max(1, _as_int(os.environ.get('DB_CONNECT_TIMEOUT_SECONDS'), 5))
        statement_timeout_ms = max(1000, _as_int(os.environ.get('DB_STATEMENT_TIMEOUT_MS'), 8000))
        options['connect_args'] = {
            'connect_timeout': connect_timeout_seconds,
            'options': f'-c statement_timeout={statement_timeout_ms}',
        }
    return options


def _default_backend(supabase_url, supabase_key):
    explicit = (os.environ.get('DATA_BACKEND') or '').strip().lower()
    if explicit in {'supabase', 'sql'}:
        return explicit
    return 'supabase' if (supabase_url and supabase_key) else 'sql'


class Config:
    APP_ENV = _first_env('APP_ENV', 'VERCEL_ENV', 'FLASK_ENV') or 'development'

    SUPABASE_URL = _first_env('SUPABASE_URL', 'VITE_SUPABASE_URL')
    SUPABASE_ANON_KEY = _first_env('SUPABASE_ANON_KEY', 'VITE_SUPABASE_ANON_KEY')
    SUPABASE_STORAGE_BUCKET = _first_env('SUPABASE_STORAGE_BUCKET') or 'barber-assets'
    DATA_BACKEND = _default_backend(SUPABASE_URL, SUPABASE_ANON_KEY)

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _database_engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    UPLOAD_FOLDER = (os.environ.get('UPLOAD_FOLDER') or '').strip() or (
        os.path.join(tempfile.gettempdir(), 'uploads') if _is_vercel_runtime() else os.path.join(basedir, 'uploads')
    )

    CONTENT_RESPONSE_TIMEOUT_SECONDS = _as_float(os.environ.get('CONTENT_RESPONSE_TIMEOUT_SECONDS'), 5.0)
    CONTENT_TABLE_TIMEOUT_SECONDS = _as_float(os.environ.get('CONTENT_TABLE_TIMEOUT_SECONDS'), 3.0)
    PUBLIC_APPOINTMENTS_LIMIT = max(1, _as_int(os.environ.get('PUBLIC_APPOINTMENTS_LIMIT'), 20))

    MAX_UPLOAD_MB = max(1, _as_int(os.environ.get('MAX_UPLOAD_MB'), 500))
    MAX_CONTENT_LENGTH = MAX_UPLOAD_MB * 1024 * 1024
    MAX_UPLOAD_IMAGE_PIXELS = _as_int(os.environ.get('MAX_UPLOAD_IMAGE_PIXELS'), 40_000_000)

    GEMINI_API_KEY = _first_env('GEMINI_API_KEY', 'GOOGLE_API_KEY')
    GEMINI_MODEL = _first_env('GEMINI_MODEL') or 'gemini-1.5-flash'
    GEMINI_TIMEOUT_SECONDS = _as_int(os.environ.get('GEMINI_TIMEOUT_SECONDS'), 30)

    TRUST_PROXY_HEADERS = _as_bool(os.environ.get('TRUST_PROXY_HEADERS'), _is_managed_runtime())
    IS_VERCEL = _is_vercel_runtime()

    SENTRY_DSN = (os.environ.get('SENTRY_DSN') or '').strip()
    SENTRY_ENVIRONMENT = (os.environ.get('SENTRY_ENVIRONMENT') or '').strip()
    SENTRY_TRACES_SAMPLE_RATE = _as_float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE'), 0.0)
    LOG_JSON = _as_bool(os.environ.get('LOG_JSON'), True)
    LOG_LEVEL = (os.environ.get('LOG_LEVEL') or 'INFO').strip().upper()
