import html
import re
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

try:
    from .exceptions import PayloadError
    from .models import APPOINTMENT_STATUSES
    from .utils import strip_markup
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from exceptions import PayloadError
    from models import APPOINTMENT_STATUSES
    from utils import strip_markup

_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$')
_URL_RE = re.compile(r'^(https?://\S+|/\S*)$')
DEFAULT_SERVICE_NAME = 'Geral'


def _plain_text(value):
    if value is None:
        return ''
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValueError('must be text')
    return html.unescape(strip_markup(value, max_length=None))


class _Payload(BaseModel):
    model_config = ConfigDict(extra='ignore')


class SettingsPayload(_Payload):
    settings: dict[str, str]

    @field_validator('settings', mode='before')
    @classmethod
    def coerce_values(cls, value):
        if not isinstance(value, dict):
            raise ValueError('settings must be an object')
        cleaned = {}
        for key, item in value.items():
            key_text = str(key or '').strip()
            if not key_text:
                raise ValueError('setting keys cannot be empty')
            if len(key_text) > 100:
                raise ValueError('setting keys are limited to 100 characters')
            if isinstance(item, (dict, list)):
                raise ValueError(f'setting {key_text} must be a scalar value')
            cleaned[key_text] = '' if item is None else str(item).strip()
        return cleaned


class ServiceIn(_Payload):
    name: str = Field('', max_length=200)
    price: str = Field('', max_length=60)
    desc: str = Field('', max_length=2000)

    @model_validator(mode='before')
    @classmethod
    def accept_description_column(cls, data):
        if isinstance(data, dict) and not data.get('desc') and data.get('description'):
            data = dict(data, desc=data['description'])
        return data

    @field_validator('name', mode='before')
    @classmethod
    def clean_name(cls, value):
        return _plain_text(value)

    @field_validator('price', mode='before')
    @classmethod
    def clean_price(cls, value):
        return _plain_text(value)

    @field_validator('desc', mode='before')
    @classmethod
    def clean_desc(cls, value):
        return _plain_text(value)


class MediaIn(_Payload):
    url: str = Field(..., min_length=1, max_length=1000)

    @model_validator(mode='before')
    @classmethod
    def accept_bare_url(cls, data):
        if isinstance(data, str):
            return {'url': data}
        return data

    @field_validator('url')
    @classmethod
    def looks_like_url(cls, value):
        value = value.strip()
        if not _URL_RE.match(value):
            raise ValueError('url must be an http(s) URL or an absolute path')
        return value


class ServicesPayload(_Payload):
    services: list[ServiceIn]


class GalleryPayload(_Payload):
    gallery: list[MediaIn]


class VideoGalleryPayload(_Payload):
    video_gallery: list[MediaIn]


class AppointmentIn(_Payload):
    client_name: str = Field(..., min_length=1, max_length=200)
    service_name: str = Field(DEFAULT_SERVICE_NAME, min_length=1, max_length=200)
    date: str
    time: str

    @field_validator('client_name', mode='before')
    @classmethod
    def clean_client_name(cls, value):
        return _plain_text(value)

    @field_validator('service_name', mode='before')
    @classmethod
    def clean_service_name(cls, value):
        return _plain_text(value) or DEFAULT_SERVICE_NAME

    @field_validator('date')
    @classmethod
    def iso_date(cls, value):
        value = value.strip()
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError('date must be YYYY-MM-DD') from None
        return value

    @field_validator('time')
    @classmethod
    def clock_time(cls, value):
        value = value.strip()
        if not _TIME_RE.match(value):
            raise ValueError('time must be HH:MM')
        return value


class StatusPayload(_Payload):
    status: str

    @field_validator('status')
    @classmethod
    def known_status(cls, value):
        if value not in APPOINTMENT_STATUSES:
            raise ValueError('status must be one of: ' + ', '.join(APPOINTMENT_STATUSES))
        return value


class ChatPayload(_Payload):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator('message', mode='before')
    @classmethod
    def strip_message(cls, value):
        return value.strip() if isinstance(value, str) else value


def parse_payload(schema, data):
    try:
        return schema.model_validate(data if data is not None else {})
    except ValidationError as exc:
        details = [
            {
                'field': '.'.join(str(part) for part in error.get('loc', ())),
                'message': error.get('msg', ''),
            }
            for error in exc.errors()
        ]
        raise PayloadError('Invalid payload', details) from None
