"""Small JSON client for the site API, used by the booking flow and admin tools."""
import json
import logging
import urllib.error
import urllib.request

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status, message, payload=None):
        self.status = status
        self.message = message
        self.payload = payload or {}
        super().__init__(f'{status}: {message}')


def _decode(raw):
    if not raw:
        return {}
    try:
        return json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {'error': raw.decode('utf-8', errors='replace')[:500]}


def urllib_transport(base_url, timeout=10):
    base = base_url.rstrip('/')

    def send(method, path, payload=None):
        data = json.dumps(payload).encode('utf-8') if payload is not None else None
        req = urllib.request.Request(f'{base}{path}', data=data, method=method)
        req.add_header('Accept', 'application/json')
        if data is not None:
            req.add_header('Content-Type', 'application/json')
        try:
            with urllib.request.urlopen(req, timeout=timeout) as response:  # nosec B310
                return response.status, _decode(response.read())
        except urllib.error.HTTPError as exc:
            return exc.code, _decode(exc.read())
        except urllib.error.URLError as exc:
            raise ApiError(0, f'Could not reach {base}: {exc.reason}') from exc

    return send


class ContentApiClient:
    def __init__(self, base_url='', timeout=10, transport=None):
        self._send = transport or urllib_transport(base_url, timeout=timeout)

    def _call(self, method, path, payload=None):
        status, body = self._send(method, path, payload)
        if status >= 400:
            message = body.get('error') if isinstance(body, dict) else None
            raise ApiError(status, message or f'Request failed with status {status}', body)
        return body

    def get_content(self):
        return self._call('GET', '/api/content')

    def save_settings(self, settings):
        return self._call('POST', '/api/admin/settings', {'settings': settings})

    def replace_services(self, services):
        return self._call('POST', '/api/admin/services', {'services': services})

    def replace_gallery(self, gallery):
        return self._call('POST', '/api/admin/gallery', {'gallery': gallery})

    def replace_video_gallery(self, video_gallery):
        return self._call('POST', '/api/admin/video-gallery', {'video_gallery': video_gallery})

    def create_appointment(self, client_name, service_name, date, time):
        payload = {
            'client_name': client_name,
            'service_name': service_name,
            'date': date,
            'time': time,
        }
        return self._call('POST', '/api/admin/appointments', payload)

    def list_appointments(self):
        return self._call('GET', '/api/admin/appointments').get('appointments', [])

    def update_appointment_status(self, appointment_id, status):
        return self._call('PATCH', f'/api/admin/appointments/{appointment_id}', {'status': status})

    def delete_appointment(self, appointment_id):
        return self._call('DELETE', f'/api/admin/appointments/{appointment_id}')

    def save_panel(self, settings, services, gallery, video_gallery):
        """Save every section of the admin panel in order, stopping at the first failure."""
        self.save_settings(settings)
        self.replace_services(services)
        self.replace_gallery(gallery)
        self.replace_video_gallery(video_gallery)
        logger.info('Admin panel saved.')
        return {'success': True}
