from flask import Blueprint, current_app, jsonify, request

try:
    from ..chatbot import CHAT_FACTORY_KEY, ERROR_REPLY, ChatAssistant
    from ..content import STATUS_OK, fetch_content, flatten_settings
    from ..data_service import get_data_service
    from ..exceptions import ConfigurationError, DataServiceError
    from ..models import TABLE_SETTINGS
    from ..schemas import ChatPayload, parse_payload
    from ..utils import url_preview
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from chatbot import CHAT_FACTORY_KEY, ERROR_REPLY, ChatAssistant
    from content import STATUS_OK, fetch_content, flatten_settings
    from data_service import get_data_service
    from exceptions import ConfigurationError, DataServiceError
    from models import TABLE_SETTINGS
    from schemas import ChatPayload, parse_payload
    from utils import url_preview

main_bp = Blueprint('main', __name__)


@main_bp.get('/api/health')
def health():
    return jsonify({'status': 'ok', 'env': current_app.config.get('APP_ENV')})


@main_bp.get('/api/debug')
def debug():
    url = current_app.config.get('SUPABASE_URL') or ''
    key = current_app.config.get('SUPABASE_ANON_KEY') or ''
    diagnostics = {
        'hasUrl': bool(url),
        'hasKey': bool(key),
        'urlPreview': url_preview(url),
        'env': current_app.config.get('APP_ENV'),
        'isVercel': bool(current_app.config.get('IS_VERCEL')),
        'backend': current_app.config.get('DATA_BACKEND'),
    }
    try:
        get_data_service().ping()
        diagnostics['connectionTest'] = 'Success'
        diagnostics['tablesFound'] = True
    except (ConfigurationError, DataServiceError) as exc:
        diagnostics['connectionTest'] = f'Failed: {exc.message}'
        diagnostics['tablesFound'] = False
    return jsonify(diagnostics)


@main_bp.get('/api/supabase-config')
def supabase_config():
    return jsonify({
        'url': current_app.config.get('SUPABASE_URL') or '',
        'anonKey': current_app.config.get('SUPABASE_ANON_KEY') or '',
    })


@main_bp.get('/api/content')
def content():
    app = current_app._get_current_object()
    result = fetch_content(
        lambda: get_data_service(app),
        response_timeout=float(app.config.get('CONTENT_RESPONSE_TIMEOUT_SECONDS') or 5.0),
        table_timeout=float(app.config.get('CONTENT_TABLE_TIMEOUT_SECONDS') or 3.0),
        appointments_limit=int(app.config.get('PUBLIC_APPOINTMENTS_LIMIT') or 20),
    )
    if result.status != STATUS_OK:
        app.logger.warning(
            'Content served with status %s (tables: %s).',
            result.status,
            ', '.join(result.failed_tables) or '-',
        )
    response = jsonify(result.document)
    response.headers['X-Content-Status'] = result.status
    response.headers['Cache-Control'] = 'no-store'
    return response


def _current_settings():
    try:
        return flatten_settings(get_data_service().select(TABLE_SETTINGS))
    except (ConfigurationError, DataServiceError) as exc:
        current_app.logger.warning('Chat falling back to default settings: %s', exc.message)
        return flatten_settings([])


@main_bp.post('/api/chat')
def chat():
    payload = parse_payload(ChatPayload, request.get_json(silent=True))
    factory = current_app.extensions.get(CHAT_FACTORY_KEY) or ChatAssistant
    assistant = factory(
        current_app.config.get('GEMINI_API_KEY'),
        current_app.config.get('GEMINI_MODEL'),
        settings=_current_settings(),
        timeout=current_app.config.get('GEMINI_TIMEOUT_SECONDS') or 30,
    )
    try:
        reply = assistant.reply(payload.message)
    except Exception as exc:
        current_app.logger.exception('Chat provider call failed.')
        return jsonify({'error': str(exc) or 'Chat provider error', 'reply': ERROR_REPLY}), 502
    return jsonify({'reply': reply})
