"""Client-side content store.

Holds the last known good content document for the consuming page. It is
seeded with defaults so the page always has something to show, and merges
server responses with a "last good wins" rule: populated content is never
replaced by an empty answer. An empty list is treated as "not loaded yet",
so a list an admin clears completely keeps showing its previous items until
a new one is added.
"""
import copy
import logging

try:
    from .content import DEFAULT_SETTINGS
    from .models import TABLE_APPOINTMENTS, TABLE_GALLERY, TABLE_SERVICES, TABLE_SETTINGS, TABLE_VIDEO_GALLERY
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from content import DEFAULT_SETTINGS
    from models import TABLE_APPOINTMENTS, TABLE_GALLERY, TABLE_SERVICES, TABLE_SETTINGS, TABLE_VIDEO_GALLERY

logger = logging.getLogger(__name__)

NON_REGRESSING_LISTS = (TABLE_SERVICES, TABLE_GALLERY, TABLE_VIDEO_GALLERY)

DEFAULT_CONTENT = {
    TABLE_SETTINGS: dict(DEFAULT_SETTINGS),
    TABLE_SERVICES: [
        {'name': 'Corte Social', 'price': 'R$ 35', 'desc': 'Corte clássico e acabamento impecável'},
        {'name': 'Barba Completa', 'price': 'R$ 30', 'desc': 'Toalha quente e barbear tradicional'},
        {'name': 'Combo Premium', 'price': 'R$ 60', 'desc': 'Cabelo + Barba + Lavagem'},
    ],
    TABLE_GALLERY: [
        {'url': 'https://picsum.photos/seed/barber1/800/800'},
        {'url': 'https://picsum.photos/seed/barber2/800/800'},
        {'url': 'https://picsum.photos/seed/barber3/800/800'},
    ],
    TABLE_VIDEO_GALLERY: [],
    TABLE_APPOINTMENTS: [],
}


def merge_content(current, incoming):
    incoming = incoming or {}
    merged = {TABLE_SETTINGS: dict(current.get(TABLE_SETTINGS) or {})}
    for key, value in (incoming.get(TABLE_SETTINGS) or {}).items():
        if value in (None, '') and merged[TABLE_SETTINGS].get(key):
            continue
        merged[TABLE_SETTINGS][key] = value

    for section in NON_REGRESSING_LISTS:
        fresh = incoming.get(section)
        merged[section] = list(fresh) if fresh else list(current.get(section) or [])

    if incoming.get(TABLE_APPOINTMENTS) is not None:
        merged[TABLE_APPOINTMENTS] = list(incoming[TABLE_APPOINTMENTS])
    else:
        merged[TABLE_APPOINTMENTS] = list(current.get(TABLE_APPOINTMENTS) or [])
    return merged


class ContentStore:
    def __init__(self, seed=None):
        self._document = copy.deepcopy(seed if seed is not None else DEFAULT_CONTENT)
        self.last_error = None

    @property
    def document(self):
        return copy.deepcopy(self._document)

    @property
    def settings(self):
        return dict(self._document.get(TABLE_SETTINGS) or {})

    def apply(self, incoming):
        self._document = merge_content(self._document, copy.deepcopy(incoming))
        return self.document

    def refresh(self, fetch):
        """Pull a fresh document with ``fetch`` and merge it.

        A failed fetch leaves the current state untouched and is kept in
        ``last_error`` for the page to show.
        """
        try:
            incoming = fetch()
        except Exception as exc:
            logger.warning('Content refresh failed: %s', exc)
            self.last_error = str(exc)
            return False
        self.last_error = None
        self.apply(incoming)
        return True
