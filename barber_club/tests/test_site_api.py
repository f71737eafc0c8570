import pytest

from conftest import MemoryDataService, build_test_app

try:
    from barber_club.chatbot import EMPTY_REPLY, ERROR_REPLY, ChatAssistant, build_system_instruction
except ModuleNotFoundError:  # pragma: no cover - fallback for direct barber_club/ cwd test runs
    from chatbot import EMPTY_REPLY, ERROR_REPLY, ChatAssistant, build_system_instruction


def fake_chat_factory(generate):
    def factory(api_key, model, **kwargs):
        return ChatAssistant(api_key, model, generate=generate, **kwargs)
    return factory


def test_health_reports_environment(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok', 'env': 'test'}


def test_probes(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}

    ready = client.get('/readyz')
    assert ready.status_code == 200
    assert ready.get_json()['checks'] == {'data_service': True}


def test_readiness_fails_when_backend_is_down(tmp_path, monkeypatch):
    service = MemoryDataService(failures={'ping': 'connection refused'})
    app = build_test_app(tmp_path, monkeypatch, data_service=service)

    response = app.test_client().get('/readyz')

    assert response.status_code == 503
    assert response.get_json()['status'] == 'degraded'


def test_debug_reports_connection_state(client):
    payload = client.get('/api/debug').get_json()

    assert payload['hasUrl'] is False
    assert payload['hasKey'] is False
    assert payload['urlPreview'] == 'missing'
    assert payload['backend'] == 'sql'
    assert payload['connectionTest'] == 'Success'
    assert payload['tablesFound'] is True


def test_debug_reports_missing_credentials(tmp_path, monkeypatch):
    app = build_test_app(tmp_path, monkeypatch, overrides={
        'DATA_BACKEND': 'supabase',
        'SUPABASE_URL': 'https://abcdefghijklmnop.supabase.co',
    })

    payload = app.test_client().get('/api/debug').get_json()

    assert payload['hasUrl'] is True
    assert payload['hasKey'] is False
    assert payload['urlPreview'] == 'https://abcdefg...'
    assert payload['connectionTest'].startswith('Failed: ')
    assert payload['tablesFound'] is False


def test_supabase_config_exposes_public_values(tmp_path, monkeypatch):
    app = build_test_app(tmp_path, monkeypatch, overrides={
        'SUPABASE_URL': 'https://project.supabase.co',
        'SUPABASE_ANON_KEY': 'anon-key',
    })

    payload = app.test_client().get('/api/supabase-config').get_json()

    assert payload == {'url': 'https://project.supabase.co', 'anonKey': 'anon-key'}


def test_unknown_api_route_returns_structured_404(client):
    response = client.get('/api/nope?x=1')

    assert response.status_code == 404
    assert response.get_json() == {
        'error': 'API Route Not Found',
        'path': '/api/nope',
        'url': '/api/nope?x=1',
        'method': 'GET',
    }


def test_wrong_method_returns_json(client):
    response = client.get('/api/admin/services')

    assert response.status_code == 405
    assert response.get_json()['error'] == 'Method Not Allowed'


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get('/api/health', headers={'X-Request-ID': 'req-12345678'})
    assert echoed.headers['X-Request-ID'] == 'req-12345678'

    generated = client.get('/api/health', headers={'X-Request-ID': 'bad id!'})
    assert generated.headers['X-Request-ID'] != 'bad id!'
    assert len(generated.headers['X-Request-ID']) == 32
    assert generated.headers['X-Content-Type-Options'] == 'nosniff'


def test_unhandled_error_returns_generic_message(tmp_path, monkeypatch):
    class BrokenService(MemoryDataService):
        def upsert(self, table, row, on_conflict):
            raise RuntimeError('driver exploded')

    app = build_test_app(
        tmp_path,
        monkeypatch,
        overrides={'PROPAGATE_EXCEPTIONS': False},
        data_service=BrokenService(),
    )

    response = app.test_client().post('/api/admin/settings', json={'settings': {'address': 'Rua X'}})

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Erro interno no servidor'}


def test_chat_returns_model_reply(tmp_path, monkeypatch):
    seen = []

    def generate(message):
        seen.append(message)
        return 'Temos horários amanhã às 10h.'

    app = build_test_app(tmp_path, monkeypatch, chat_factory=fake_chat_factory(generate))

    response = app.test_client().post('/api/chat', json={'message': '  Tem horário amanhã?  '})

    assert response.status_code == 200
    assert response.get_json() == {'reply': 'Temos horários amanhã às 10h.'}
    assert seen == ['Tem horário amanhã?']


def test_chat_empty_model_reply_uses_fallback(tmp_path, monkeypatch):
    app = build_test_app(tmp_path, monkeypatch, chat_factory=fake_chat_factory(lambda message: ''))

    response = app.test_client().post('/api/chat', json={'message': 'Oi'})

    assert response.get_json() == {'reply': EMPTY_REPLY}


def test_chat_provider_failure_returns_502_with_fallback(tmp_path, monkeypatch):
    def generate(message):
        raise RuntimeError('quota exceeded')

    app = build_test_app(tmp_path, monkeypatch, chat_factory=fake_chat_factory(generate))

    response = app.test_client().post('/api/chat', json={'message': 'Oi'})

    assert response.status_code == 502
    assert response.get_json() == {'error': 'quota exceeded', 'reply': ERROR_REPLY}


def test_chat_without_api_key_is_unavailable(client):
    response = client.post('/api/chat', json={'message': 'Oi'})

    assert response.status_code == 503
    assert 'GEMINI_API_KEY' in response.get_json()['error']


@pytest.mark.parametrize('payload', [{}, {'message': ''}, {'message': '   '}, {'message': 'x' * 2001}])
def test_chat_rejects_empty_or_huge_messages(client, payload):
    response = client.post('/api/chat', json=payload)

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid payload'


def test_system_instruction_uses_current_settings():
    instruction = build_system_instruction({'address': 'Rua das Flores, 42', 'whatsapp_number': '+55 (21) 98888-7777'})

    assert 'Rua das Flores, 42' in instruction
    assert 'https://wa.me/5521988887777' in instruction


def test_system_instruction_falls_back_to_defaults():
    instruction = build_system_instruction({'address': ''})

    assert 'Rua Exemplo, 123' in instruction
    assert 'https://wa.me/5511999999999' in instruction
