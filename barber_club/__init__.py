import json
import logging
import re
import secrets

from flask import Flask, g, has_request_context, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

try:
    from .chatbot import CHAT_FACTORY_KEY
    from .config import Config
    from .data_service import get_data_service, init_data_service
    from .exceptions import BarberClubError, ConfigurationError, DataServiceError, PayloadError
    from .models import db
    from .uploads import too_large_message
except ImportError:  # pragma: no cover - fallback when running from barber_club/ as script root
    from chatbot import CHAT_FACTORY_KEY
    from config import Config
    from data_service import get_data_service, init_data_service
    from exceptions import BarberClubError, ConfigurationError, DataServiceError, PayloadError
    from models import db
    from uploads import too_large_message

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,80}$")
_sentry_initialized = False


class JsonLogFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'time': self.formatTime(record, self.datefmt),
        }
        if has_request_context():
            payload.update(
                {
                    'request_id': getattr(g, 'request_id', ''),
                    'method': request.method,
                    'path': request.path,
                    'remote_ip': request.remote_addr,
                }
            )
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(app):
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))
    if not app.config.get('LOG_JSON', True):
        return
    formatter = JsonLogFormatter()
    for handler in app.logger.handlers:
        handler.setFormatter(formatter)


def init_sentry(app):
    global _sentry_initialized
    if _sentry_initialized:
        return

    dsn = (app.config.get('SENTRY_DSN') or '').strip()
    if not dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        traces_sample_rate = float(app.config.get('SENTRY_TRACES_SAMPLE_RATE') or 0.0)
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=traces_sample_rate,
            environment=(app.config.get('SENTRY_ENVIRONMENT') or app.config.get('APP_ENV') or None),
        )
        _sentry_initialized = True
        app.logger.info('Sentry monitoring enabled.')
    except Exception:
        app.logger.exception('Failed to initialize Sentry monitoring.')


def register_error_handlers(app):
    @app.errorhandler(BarberClubError)
    def handle_domain_error(error):
        payload = {'error': error.message}
        if isinstance(error, PayloadError):
            payload['details'] = error.details
        if error.status_code >= 500:
            app.logger.error('%s: %s', type(error).__name__, error.message)
        return jsonify(payload), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({
            'error': 'API Route Not Found',
            'path': request.path,
            'url': request.full_path.rstrip('?'),
            'method': request.method,
        }), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({
            'error': 'Method Not Allowed',
            'path': request.path,
            'method': request.method,
        }), 405

    @app.errorhandler(413)
    def handle_too_large(error):
        app.logger.warning('Upload rejected: payload larger than MAX_CONTENT_LENGTH.')
        return jsonify({'error': too_large_message()}), 413

    @app.errorhandler(500)
    def handle_server_error(error):
        original = getattr(error, 'original_exception', None)
        if original is not None and not isinstance(original, HTTPException):
            app.logger.error('Unhandled error on %s', request.path, exc_info=original)
        return jsonify({'error': 'Erro interno no servidor'}), 500


def create_app(config_overrides=None, data_service=None, chat_factory=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app)

    if app.config.get('TRUST_PROXY_HEADERS'):
        # Only trust one proxy hop (the platform edge) when explicitly enabled.
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_sentry(app)

    db.init_app(app)
    init_data_service(app, data_service)
    if chat_factory is not None:
        app.extensions[CHAT_FACTORY_KEY] = chat_factory

    @app.before_request
    def assign_request_id():
        incoming = (request.headers.get('X-Request-ID') or '').strip()
        if _REQUEST_ID_RE.match(incoming):
            g.request_id = incoming
        else:
            g.request_id = secrets.token_hex(16)

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        if request.path.startswith('/api/admin') or request.path.startswith('/api/debug'):
            response.headers.setdefault('X-Robots-Tag', 'noindex, nofollow, noarchive')
        return response

    register_error_handlers(app)

    @app.get('/healthz')
    def healthz():
        return {'status': 'ok'}, 200

    @app.get('/readyz')
    def readyz():
        checks = {'data_service': False}
        try:
            get_data_service(app).ping()
            checks['data_service'] = True
        except (ConfigurationError, DataServiceError) as exc:
            app.logger.warning('Readiness check failed: %s', exc.message)
        ready = all(checks.values())
        return {'status': 'ready' if ready else 'degraded', 'checks': checks}, (200 if ready else 503)

    try:
        from .routes.main import main_bp
        from .routes.admin import admin_bp
    except ImportError:  # pragma: no cover - fallback for script-style execution
        from routes.main import main_bp
        from routes.admin import admin_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp, url_prefix='/api')

    if app.config.get('DATA_BACKEND') == 'sql':
        with app.app_context():
            try:
                db.create_all()
            except Exception:
                app.logger.exception('db.create_all() failed; tables may need manual migration.')

    return app
