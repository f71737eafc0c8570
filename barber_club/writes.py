"""Admin-side writes against the data service.

Unlike the read path, nothing here is swallowed: every failure propagates so
the caller learns that an edit was lost.
"""
import logging

try:
    from .content import appointment_item
    from .models import (
        APPOINTMENT_STATUS_PENDING,
        TABLE_APPOINTMENTS,
        TABLE_GALLERY,
        TABLE_SERVICES,
        TABLE_SETTINGS,
        TABLE_VIDEO_GALLERY,
    )
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from content import appointment_item
    from models import (
        APPOINTMENT_STATUS_PENDING,
        TABLE_APPOINTMENTS,
        TABLE_GALLERY,
        TABLE_SERVICES,
        TABLE_SETTINGS,
        TABLE_VIDEO_GALLERY,
    )

logger = logging.getLogger(__name__)

UPLOAD_HERO_VIDEO = 'hero_video'
UPLOAD_GALLERY_IMAGE = 'gallery_image'
UPLOAD_GALLERY_VIDEO = 'gallery_video'


class ContentWriter:
    def __init__(self, service):
        self.service = service

    def save_settings(self, settings):
        for key, value in settings.items():
            self.service.upsert(TABLE_SETTINGS, {'key': key, 'value': value}, on_conflict='key')
        logger.info('Saved %d settings.', len(settings))

    def replace_services(self, services):
        rows = [
            {'name': item.name, 'price': item.price, 'description': item.desc}
            for item in services
        ]
        self.service.replace_all(TABLE_SERVICES, rows)
        logger.info('Replaced services with %d rows.', len(rows))

    def replace_gallery(self, items):
        self._replace_media(TABLE_GALLERY, items)

    def replace_video_gallery(self, items):
        self._replace_media(TABLE_VIDEO_GALLERY, items)

    def _replace_media(self, table, items):
        rows = [{'url': item.url} for item in items]
        self.service.replace_all(table, rows)
        logger.info('Replaced %s with %d rows.', table, len(rows))

    def create_appointment(self, booking):
        row = {
            'client_name': booking.client_name,
            'service_name': booking.service_name,
            'date': booking.date,
            'time': booking.time,
            'status': APPOINTMENT_STATUS_PENDING,
        }
        self.service.insert(TABLE_APPOINTMENTS, [row])
        logger.info('Appointment booked for %s at %s %s.', booking.service_name, booking.date, booking.time)

    def update_appointment_status(self, appointment_id, status):
        self.service.update(TABLE_APPOINTMENTS, appointment_id, {'status': status})
        logger.info('Appointment %s set to %s.', appointment_id, status)

    def delete_appointment(self, appointment_id):
        self.service.delete(TABLE_APPOINTMENTS, appointment_id)
        logger.info('Appointment %s deleted.', appointment_id)

    def list_appointments(self):
        rows = self.service.select(TABLE_APPOINTMENTS, order_by='date', descending=True)
        return [appointment_item(row) for row in rows]

    def record_upload(self, kind, url):
        if kind == UPLOAD_HERO_VIDEO:
            self.service.upsert(TABLE_SETTINGS, {'key': 'hero_video', 'value': url}, on_conflict='key')
        elif kind == UPLOAD_GALLERY_IMAGE:
            self.service.insert(TABLE_GALLERY, [{'url': url}])
        elif kind == UPLOAD_GALLERY_VIDEO:
            self.service.insert(TABLE_VIDEO_GALLERY, [{'url': url}])
        else:
            raise ValueError(f'Unknown upload kind {kind!r}')
