from flask_sqlalchemy import SQLAlchemy

try:
    from .utils import utc_now_naive
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from utils import utc_now_naive

db = SQLAlchemy()

APPOINTMENT_STATUS_PENDING = 'Pendente'
APPOINTMENT_STATUS_DONE = 'Concluído'
APPOINTMENT_STATUS_CANCELLED = 'Cancelado'
APPOINTMENT_STATUSES = (
    APPOINTMENT_STATUS_PENDING,
    APPOINTMENT_STATUS_DONE,
    APPOINTMENT_STATUS_CANCELLED,
)

TABLE_SETTINGS = 'settings'
TABLE_SERVICES = 'services'
TABLE_GALLERY = 'gallery'
TABLE_VIDEO_GALLERY = 'video_gallery'
TABLE_APPOINTMENTS = 'appointments'
CONTENT_TABLES = (
    TABLE_SETTINGS,
    TABLE_SERVICES,
    TABLE_GALLERY,
    TABLE_VIDEO_GALLERY,
    TABLE_APPOINTMENTS,
)


class Setting(db.Model):
    __tablename__ = TABLE_SETTINGS

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, default='')


class Service(db.Model):
    __tablename__ = TABLE_SERVICES

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.String(60), nullable=False, default='')
    description = db.Column(db.Text, default='')


class GalleryItem(db.Model):
    __tablename__ = TABLE_GALLERY

    id = db.Column(db.Integer, primary_key=True)
    url = db.Column(db.String(1000), nullable=False)


class VideoItem(db.Model):
    __tablename__ = TABLE_VIDEO_GALLERY

    id = db.Column(db.Integer, primary_key=True)
    url = db.Column(db.String(1000), nullable=False)


class Appointment(db.Model):
    __tablename__ = TABLE_APPOINTMENTS

    id = db.Column(db.Integer, primary_key=True)
    client_name = db.Column(db.String(200), nullable=False)
    service_name = db.Column(db.String(200), nullable=False)
    date = db.Column(db.String(10), nullable=False, index=True)
    time = db.Column(db.String(8), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=APPOINTMENT_STATUS_PENDING, index=True)
    created_at = db.Column(db.DateTime, default=utc_now_naive)


MODEL_BY_TABLE = {
    TABLE_SETTINGS: Setting,
    TABLE_SERVICES: Service,
    TABLE_GALLERY: GalleryItem,
    TABLE_VIDEO_GALLERY: VideoItem,
    TABLE_APPOINTMENTS: Appointment,
}


def row_to_dict(instance):
    row = {}
    for column in instance.__table__.columns:
        value = getattr(instance, column.key)
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        row[column.key] = value
    return row
