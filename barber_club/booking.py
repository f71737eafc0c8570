"""Booking submission flow and WhatsApp deep links."""
from dataclasses import dataclass
from urllib.parse import quote

try:
    from .content import DEFAULT_WHATSAPP_NUMBER
    from .schemas import DEFAULT_SERVICE_NAME
    from .utils import only_digits
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from content import DEFAULT_WHATSAPP_NUMBER
    from schemas import DEFAULT_SERVICE_NAME
    from utils import only_digits

WHATSAPP_BASE_URL = 'https://wa.me'
FLOATING_GREETING = 'Olá! Gostaria de agendar um horário.'


@dataclass
class BookingForm:
    name: str
    date: str
    time: str
    service_name: str = ''

    @property
    def service(self):
        return (self.service_name or '').strip() or DEFAULT_SERVICE_NAME


def build_booking_message(form):
    return (
        f'Olá! Meu nome é {form.name}. '
        f'Gostaria de agendar {form.service} para o dia {form.date} às {form.time}.'
    )


def whatsapp_link(number, text=None):
    digits = only_digits(number) or DEFAULT_WHATSAPP_NUMBER
    url = f'{WHATSAPP_BASE_URL}/{digits}'
    if text:
        url = f'{url}?text={quote(text, safe="")}'
    return url


def floating_whatsapp_link(number=None):
    return whatsapp_link(number, FLOATING_GREETING)


def submit_booking(client, store, form):
    """Record the appointment, then return the WhatsApp link to open.

    A failed post propagates; no link is built for a booking that was not
    saved. The store is refreshed afterwards so the new appointment shows up.
    """
    client.create_appointment(
        client_name=form.name,
        service_name=form.service,
        date=form.date,
        time=form.time,
    )
    link = whatsapp_link(store.settings.get('whatsapp_number'), build_booking_message(form))
    store.refresh(client.get_content)
    return link
