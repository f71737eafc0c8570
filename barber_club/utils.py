"""Shared utility functions used across route and gateway modules."""
import re
from datetime import datetime, timezone

import bleach

_DIGITS_RE = re.compile(r'\D+')


def utc_now_naive():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_text(value, max_length=255):
    return (value or '').strip()[:max_length]


def strip_markup(value, max_length=255):
    """Plain-text field: drop any HTML the admin panel may have pasted in.

    ``max_length=None`` keeps the whole text so callers can validate its length.
    """
    cleaned = bleach.clean(str(value or ''), tags=[], attributes={}, strip=True)
    return clean_text(cleaned, max_length)


def only_digits(value):
    return _DIGITS_RE.sub('', str(value or ''))


def url_preview(value, length=15):
    if not value:
        return 'missing'
    return f'{value[:length]}...'
