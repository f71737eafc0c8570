import time

from conftest import MemoryDataService, build_test_app

try:
    from barber_club.content import (
        DEFAULT_HERO_VIDEO,
        DEFAULT_SETTINGS,
        STATUS_OK,
        STATUS_PARTIAL,
        STATUS_TIMEOUT,
        STATUS_UNAVAILABLE,
        fallback_document,
        fetch_content,
        flatten_settings,
    )
    from barber_club.exceptions import ConfigurationError
    from barber_club.models import CONTENT_TABLES
except ModuleNotFoundError:  # pragma: no cover - fallback for direct barber_club/ cwd test runs
    from content import (
        DEFAULT_HERO_VIDEO,
        DEFAULT_SETTINGS,
        STATUS_OK,
        STATUS_PARTIAL,
        STATUS_TIMEOUT,
        STATUS_UNAVAILABLE,
        fallback_document,
        fetch_content,
        flatten_settings,
    )
    from exceptions import ConfigurationError
    from models import CONTENT_TABLES


def populated_tables():
    return {
        'settings': [
            {'key': 'whatsapp_number', 'value': '5521988887777'},
            {'key': 'address', 'value': 'Av. Atlântica, 500'},
        ],
        'services': [{'id': 1, 'name': 'Corte', 'price': 'R$30', 'description': 'Degradê'}],
        'gallery': [{'id': 1, 'url': 'https://img.example.test/1.jpg'}],
        'video_gallery': [{'id': 1, 'url': 'https://img.example.test/1.mp4'}],
        'appointments': [
            {
                'id': 1,
                'client_name': 'João',
                'service_name': 'Corte',
                'date': '2024-06-01',
                'time': '14:00',
                'status': 'Pendente',
            }
        ],
    }


def test_flatten_settings_keeps_defaults_and_stored_values_win():
    settings = flatten_settings([
        {'key': 'address', 'value': 'Rua A, 1'},
        {'key': 'opening_hours', 'value': 'Seg-Sáb'},
        {'key': 'address', 'value': 'Rua B, 2'},
        {'value': 'orphan'},
        {'key': 'notice', 'value': None},
    ])

    assert set(DEFAULT_SETTINGS).issubset(settings)
    assert settings['address'] == 'Rua B, 2'
    assert settings['opening_hours'] == 'Seg-Sáb'
    assert settings['whatsapp_number'] == DEFAULT_SETTINGS['whatsapp_number']
    assert settings['notice'] == ''
    assert 'orphan' not in settings.values()


def test_fetch_content_returns_all_tables_when_healthy():
    service = MemoryDataService(populated_tables())

    result = fetch_content(lambda: service)

    assert result.status == STATUS_OK
    assert result.failed_tables == ()
    document = result.document
    assert set(document) == set(CONTENT_TABLES)
    assert document['settings']['address'] == 'Av. Atlântica, 500'
    assert document['settings']['hero_video'] == DEFAULT_HERO_VIDEO
    assert document['services'] == [{'id': 1, 'name': 'Corte', 'price': 'R$30', 'desc': 'Degradê'}]
    assert document['appointments'][0]['status'] == 'Pendente'


def test_single_failing_table_only_empties_that_table():
    for failing in CONTENT_TABLES:
        service = MemoryDataService(populated_tables(), failures={failing: 'relation does not exist'})

        result = fetch_content(lambda: service)

        assert result.status == STATUS_PARTIAL
        assert result.failed_tables == (failing,)
        for table in CONTENT_TABLES:
            if table == 'settings':
                continue
            if table == failing:
                assert result.document[table] == []
            else:
                assert len(result.document[table]) == 1
        if failing == 'settings':
            assert result.document['settings'] == DEFAULT_SETTINGS
        else:
            assert result.document['settings']['whatsapp_number'] == '5521988887777'


def test_slow_table_degrades_alone_and_is_cancelled():
    service = MemoryDataService(populated_tables(), delays={'gallery': 2.0})

    result = fetch_content(lambda: service, response_timeout=3.0, table_timeout=0.2)

    assert result.status == STATUS_PARTIAL
    assert result.failed_tables == ('gallery',)
    assert result.document['gallery'] == []
    assert len(result.document['services']) == 1
    assert result.document['settings']['address'] == 'Av. Atlântica, 500'
    for _ in range(50):
        if service.cancelled:
            break
        time.sleep(0.02)
    assert service.cancelled == ['gallery']


def test_overall_deadline_serves_fallback_document():
    service = MemoryDataService(populated_tables(), delays={'settings': 2.0})

    result = fetch_content(lambda: service, response_timeout=0.2, table_timeout=1.0)

    assert result.status == STATUS_TIMEOUT
    assert result.document == fallback_document()


def test_short_table_timeout_keeps_partial_document_within_overall_deadline():
    slow = {table: 2.0 for table in CONTENT_TABLES}
    service = MemoryDataService(populated_tables(), delays=slow)

    result = fetch_content(lambda: service, response_timeout=1.0, table_timeout=0.2)

    assert result.status == STATUS_PARTIAL
    assert result.failed_tables == CONTENT_TABLES
    assert result.document == fallback_document()


def test_missing_backend_serves_fallback_document():
    def provider():
        raise ConfigurationError('no credentials')

    result = fetch_content(provider)

    assert result.status == STATUS_UNAVAILABLE
    assert result.document == fallback_document()


def test_public_appointments_are_newest_first_and_capped():
    appointments = [
        {
            'id': day,
            'client_name': f'Cliente {day}',
            'service_name': 'Corte',
            'date': f'2025-01-{day:02d}',
            'time': '10:00',
            'status': 'Pendente',
        }
        for day in range(1, 26)
    ]
    service = MemoryDataService({'appointments': appointments})

    result = fetch_content(lambda: service, appointments_limit=20)

    listed = result.document['appointments']
    assert len(listed) == 20
    assert listed[0]['date'] == '2025-01-25'
    assert listed[-1]['date'] == '2025-01-06'


def test_content_endpoint_on_empty_database_returns_defaults(client):
    response = client.get('/api/content')

    assert response.status_code == 200
    assert response.headers['X-Content-Status'] == STATUS_OK
    assert response.headers['Cache-Control'] == 'no-store'
    payload = response.get_json()
    assert payload['settings'] == {
        'whatsapp_number': '5511999999999',
        'address': 'Rua Exemplo, 123',
        'hero_video': DEFAULT_HERO_VIDEO,
    }
    for section in ('services', 'gallery', 'video_gallery', 'appointments'):
        assert payload[section] == []


def test_content_endpoint_survives_total_outage(tmp_path, monkeypatch):
    app = build_test_app(tmp_path, monkeypatch, overrides={'DATA_BACKEND': 'supabase'})
    client = app.test_client()

    response = client.get('/api/content')

    assert response.status_code == 200
    assert response.headers['X-Content-Status'] == STATUS_UNAVAILABLE
    assert response.get_json() == fallback_document()


def test_content_endpoint_reports_partial_status(tmp_path, monkeypatch):
    service = MemoryDataService(populated_tables(), failures={'video_gallery': 'boom'})
    app = build_test_app(tmp_path, monkeypatch, data_service=service)

    response = app.test_client().get('/api/content')

    assert response.status_code == 200
    assert response.headers['X-Content-Status'] == STATUS_PARTIAL
    payload = response.get_json()
    assert payload['video_gallery'] == []
    assert payload['gallery'] == [{'id': 1, 'url': 'https://img.example.test/1.jpg'}]
