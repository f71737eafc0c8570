import secrets
import time

from flask import current_app
from PIL import Image, UnidentifiedImageError
from slugify import slugify
from werkzeug.utils import secure_filename

try:
    from .exceptions import UploadRejected
    from .writes import UPLOAD_GALLERY_IMAGE, UPLOAD_GALLERY_VIDEO, UPLOAD_HERO_VIDEO
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from exceptions import UploadRejected
    from writes import UPLOAD_GALLERY_IMAGE, UPLOAD_GALLERY_VIDEO, UPLOAD_HERO_VIDEO

VIDEO_EXTENSION_MIMES = {
    'mp4': {'video/mp4'},
    'mov': {'video/quicktime', 'video/mp4'},
    'webm': {'video/webm'},
    'm4v': {'video/x-m4v', 'video/mp4'},
}
IMAGE_EXTENSION_MIMES = {
    'png': {'image/png'},
    'jpg': {'image/jpeg'},
    'jpeg': {'image/jpeg'},
    'gif': {'image/gif'},
    'webp': {'image/webp'},
}
UPLOAD_KINDS = {
    UPLOAD_HERO_VIDEO: {'field': 'video', 'prefix': 'hero', 'mimes': VIDEO_EXTENSION_MIMES},
    UPLOAD_GALLERY_VIDEO: {'field': 'video', 'prefix': 'gallery-video', 'mimes': VIDEO_EXTENSION_MIMES},
    UPLOAD_GALLERY_IMAGE: {'field': 'image', 'prefix': 'gallery-image', 'mimes': IMAGE_EXTENSION_MIMES},
}


def too_large_message():
    limit_mb = int(current_app.config.get('MAX_CONTENT_LENGTH') or 0) // (1024 * 1024)
    return f'Arquivo muito grande. O limite é {limit_mb}MB.'


def _extension(filename):
    return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''


def _verify_image(file):
    max_pixels = max(1, int(current_app.config.get('MAX_UPLOAD_IMAGE_PIXELS', 40_000_000)))
    file.stream.seek(0)
    try:
        with Image.open(file.stream) as image:
            width, height = image.size
            if width < 1 or height < 1 or (width * height) > max_pixels:
                raise UploadRejected('Imagem inválida ou grande demais.')
            image.verify()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        raise UploadRejected('Imagem inválida.') from None
    finally:
        file.stream.seek(0)


def validate_upload(file, kind):
    """Check the uploaded file for ``kind`` and return its extension."""
    if not file or not file.filename:
        raise UploadRejected('No file uploaded')
    rules = UPLOAD_KINDS[kind]
    filename = secure_filename(file.filename)
    extension = _extension(filename)
    if not filename or len(filename) > 180 or extension not in rules['mimes']:
        raise UploadRejected('Tipo de arquivo não permitido.')
    mime_type = (file.mimetype or '').split(';', 1)[0].lower()
    if mime_type not in rules['mimes'][extension]:
        raise UploadRejected('Tipo de arquivo não permitido.')
    if rules['mimes'] is IMAGE_EXTENSION_MIMES:
        _verify_image(file)
    return extension


def build_object_name(kind, filename):
    stem = slugify(secure_filename(filename).rsplit('.', 1)[0])[:40]
    extension = _extension(secure_filename(filename))
    millis = int(time.time() * 1000)
    parts = [UPLOAD_KINDS[kind]['prefix'], str(millis), secrets.token_hex(4)]
    if stem:
        parts.append(stem)
    return f"{'-'.join(parts)}.{extension}"


def store_upload(service, file, kind):
    validate_upload(file, kind)
    object_name = build_object_name(kind, file.filename)
    file.stream.seek(0)
    data = file.stream.read()
    return service.upload_blob(object_name, data, (file.mimetype or '').split(';', 1)[0])
