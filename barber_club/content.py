"""Aggregate content read used by the public page.

The read path never fails outward: every table is queried on its own worker
with its own deadline, and the whole assembly runs against an overall
deadline after which the compiled-in fallback document is served instead.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

try:
    from .exceptions import ConfigurationError
    from .models import (
        CONTENT_TABLES,
        TABLE_APPOINTMENTS,
        TABLE_GALLERY,
        TABLE_SERVICES,
        TABLE_SETTINGS,
        TABLE_VIDEO_GALLERY,
    )
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from exceptions import ConfigurationError
    from models import (
        CONTENT_TABLES,
        TABLE_APPOINTMENTS,
        TABLE_GALLERY,
        TABLE_SERVICES,
        TABLE_SETTINGS,
        TABLE_VIDEO_GALLERY,
    )

logger = logging.getLogger(__name__)

DEFAULT_WHATSAPP_NUMBER = '5511999999999'
DEFAULT_ADDRESS = 'Rua Exemplo, 123'
DEFAULT_HERO_VIDEO = (
    'https://oacqvijuafuzsbyyqdtt.supabase.co/storage/v1/object/public/'
    'barber-assets/gallery-video-1771970955047.MOV'
)
DEFAULT_SETTINGS = {
    'whatsapp_number': DEFAULT_WHATSAPP_NUMBER,
    'address': DEFAULT_ADDRESS,
    'hero_video': DEFAULT_HERO_VIDEO,
}
LIST_SECTIONS = (TABLE_SERVICES, TABLE_GALLERY, TABLE_VIDEO_GALLERY, TABLE_APPOINTMENTS)

STATUS_OK = 'ok'
STATUS_PARTIAL = 'partial'
STATUS_TIMEOUT = 'timeout'
STATUS_UNAVAILABLE = 'unavailable'


@dataclass
class ContentResult:
    document: dict
    status: str = STATUS_OK
    failed_tables: tuple = ()


def fallback_document():
    document = {TABLE_SETTINGS: dict(DEFAULT_SETTINGS)}
    for section in LIST_SECTIONS:
        document[section] = []
    return document


def flatten_settings(rows, defaults=None):
    settings = dict(DEFAULT_SETTINGS if defaults is None else defaults)
    for row in rows or []:
        key = (row or {}).get('key')
        if not key:
            continue
        value = row.get('value')
        settings[key] = '' if value is None else str(value)
    return settings


def service_item(row):
    return {
        'id': row.get('id'),
        'name': row.get('name') or '',
        'price': row.get('price') or '',
        'desc': row.get('desc') or row.get('description') or '',
    }


def media_item(row):
    return {'id': row.get('id'), 'url': row.get('url') or ''}


def appointment_item(row):
    return {
        'id': row.get('id'),
        'client_name': row.get('client_name') or '',
        'service_name': row.get('service_name') or '',
        'date': row.get('date') or '',
        'time': row.get('time') or '',
        'status': row.get('status') or '',
    }


def _table_query(table, appointments_limit):
    if table == TABLE_APPOINTMENTS:
        return {'order_by': 'date', 'descending': True, 'limit': appointments_limit}
    return {}


def assemble_document(rows_by_table):
    return {
        TABLE_SETTINGS: flatten_settings(rows_by_table.get(TABLE_SETTINGS)),
        TABLE_SERVICES: [service_item(row) for row in rows_by_table.get(TABLE_SERVICES) or []],
        TABLE_GALLERY: [media_item(row) for row in rows_by_table.get(TABLE_GALLERY) or []],
        TABLE_VIDEO_GALLERY: [media_item(row) for row in rows_by_table.get(TABLE_VIDEO_GALLERY) or []],
        TABLE_APPOINTMENTS: [appointment_item(row) for row in rows_by_table.get(TABLE_APPOINTMENTS) or []],
    }


def fetch_content(service_provider, *, response_timeout=5.0, table_timeout=3.0, appointments_limit=20):
    """Build the aggregate content document.

    ``service_provider`` is a zero-argument callable returning the data
    service; a ``ConfigurationError`` from it means the backend is not
    reachable at all and the fallback document is returned.

    Every table wait ends at the earlier of its own deadline and the overall
    one. All five queries start together, so when ``table_timeout`` is below
    ``response_timeout`` (the 3 s / 5 s defaults) slow tables come back empty
    with status ``partial`` and the overall fallback only covers assembly
    overrunning afterwards. With ``table_timeout >= response_timeout`` a slow
    table trips the overall deadline and the whole fallback document is served.
    """
    started = time.monotonic()
    deadline = started + response_timeout
    try:
        service = service_provider()
    except ConfigurationError as exc:
        logger.error('Content backend unavailable, serving defaults: %s', exc.message)
        return ContentResult(fallback_document(), STATUS_UNAVAILABLE, CONTENT_TABLES)

    cancel_tokens = {table: threading.Event() for table in CONTENT_TABLES}
    executor = ThreadPoolExecutor(max_workers=len(CONTENT_TABLES), thread_name_prefix='content-fetch')
    futures = {
        table: executor.submit(
            service.select,
            table,
            cancel=cancel_tokens[table],
            **_table_query(table, appointments_limit),
        )
        for table in CONTENT_TABLES
    }
    table_deadline = started + table_timeout

    rows_by_table = {}
    failed = []
    timed_out = False
    try:
        for table, future in futures.items():
            wait_until = min(table_deadline, deadline)
            try:
                rows_by_table[table] = future.result(timeout=max(0.0, wait_until - time.monotonic()))
            except FutureTimeoutError:
                cancel_tokens[table].set()
                future.cancel()
                if wait_until >= deadline:
                    timed_out = True
                    break
                logger.warning('Table %s did not answer within %.1fs; serving it empty.', table, table_timeout)
                rows_by_table[table] = []
                failed.append(table)
            except Exception as exc:
                logger.warning('Table %s could not be read: %s', table, exc)
                rows_by_table[table] = []
                failed.append(table)
    finally:
        if timed_out:
            for token in cancel_tokens.values():
                token.set()
        executor.shutdown(wait=False, cancel_futures=True)

    if timed_out or time.monotonic() > deadline:
        logger.warning('Content assembly exceeded %.1fs; serving fallback document.', response_timeout)
        return ContentResult(fallback_document(), STATUS_TIMEOUT, CONTENT_TABLES)

    document = assemble_document(rows_by_table)
    status = STATUS_PARTIAL if failed else STATUS_OK
    return ContentResult(document, status, tuple(failed))
