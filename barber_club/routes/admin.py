import os

from flask import Blueprint, abort, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename

try:
    from ..data_service import get_data_service
    from ..schemas import (
        AppointmentIn,
        GalleryPayload,
        ServicesPayload,
        SettingsPayload,
        StatusPayload,
        VideoGalleryPayload,
        parse_payload,
    )
    from ..uploads import UPLOAD_KINDS, store_upload
    from ..writes import UPLOAD_GALLERY_IMAGE, UPLOAD_GALLERY_VIDEO, UPLOAD_HERO_VIDEO, ContentWriter
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from data_service import get_data_service
    from schemas import (
        AppointmentIn,
        GalleryPayload,
        ServicesPayload,
        SettingsPayload,
        StatusPayload,
        VideoGalleryPayload,
        parse_payload,
    )
    from uploads import UPLOAD_KINDS, store_upload
    from writes import UPLOAD_GALLERY_IMAGE, UPLOAD_GALLERY_VIDEO, UPLOAD_HERO_VIDEO, ContentWriter

admin_bp = Blueprint('admin', __name__)


def _writer():
    return ContentWriter(get_data_service())


def _payload(schema):
    return parse_payload(schema, request.get_json(silent=True))


def _ok():
    return jsonify({'success': True})


def _safe_upload_path(stored_name):
    upload_root = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    raw_name = (stored_name or '').strip()
    safe_name = secure_filename(raw_name)
    if not safe_name or safe_name != raw_name:
        return None, None
    full_path = os.path.abspath(os.path.join(upload_root, safe_name))
    try:
        if os.path.commonpath([upload_root, full_path]) != upload_root:
            return None, None
    except ValueError:
        return None, None
    return safe_name, full_path


@admin_bp.post('/admin/settings')
def save_settings():
    payload = _payload(SettingsPayload)
    _writer().save_settings(payload.settings)
    return _ok()


@admin_bp.post('/admin/services')
def replace_services():
    payload = _payload(ServicesPayload)
    _writer().replace_services(payload.services)
    return _ok()


@admin_bp.post('/admin/gallery')
def replace_gallery():
    payload = _payload(GalleryPayload)
    _writer().replace_gallery(payload.gallery)
    return _ok()


@admin_bp.post('/admin/video-gallery')
def replace_video_gallery():
    payload = _payload(VideoGalleryPayload)
    _writer().replace_video_gallery(payload.video_gallery)
    return _ok()


@admin_bp.get('/admin/appointments')
def list_appointments():
    return jsonify({'appointments': _writer().list_appointments()})


@admin_bp.post('/admin/appointments')
def create_appointment():
    booking = _payload(AppointmentIn)
    _writer().create_appointment(booking)
    return _ok()


@admin_bp.patch('/admin/appointments/<int:appointment_id>')
def update_appointment(appointment_id):
    payload = _payload(StatusPayload)
    _writer().update_appointment_status(appointment_id, payload.status)
    return _ok()


@admin_bp.delete('/admin/appointments/<int:appointment_id>')
def delete_appointment(appointment_id):
    _writer().delete_appointment(appointment_id)
    return _ok()


def _handle_upload(kind):
    field = UPLOAD_KINDS[kind]['field']
    service = get_data_service()
    url = store_upload(service, request.files.get(field), kind)
    ContentWriter(service).record_upload(kind, url)
    current_app.logger.info('Stored %s upload at %s.', kind, url)
    return jsonify({'url': url})


@admin_bp.post('/upload-video')
def upload_video():
    return _handle_upload(UPLOAD_HERO_VIDEO)


@admin_bp.post('/upload-gallery-video')
def upload_gallery_video():
    return _handle_upload(UPLOAD_GALLERY_VIDEO)


@admin_bp.post('/upload-gallery-image')
def upload_gallery_image():
    return _handle_upload(UPLOAD_GALLERY_IMAGE)


@admin_bp.get('/uploads/<filename>')
def uploaded_file(filename):
    safe_filename, full_path = _safe_upload_path(filename)
    if not safe_filename or not full_path or not os.path.exists(full_path):
        abort(404)
    response = send_from_directory(current_app.config['UPLOAD_FOLDER'], safe_filename, conditional=True, etag=True)
    response.headers['Cache-Control'] = 'public, max-age=604800'
    return response
