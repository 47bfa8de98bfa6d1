"""
Date helpers registered as Jinja2 filters.

Front matter dates arrive as ``date`` objects (PyYAML parses bare ISO dates),
``datetime`` objects or free-form strings. Formatting never raises: an unknown
format falls back to DEFAULT_FORMAT and a value that is not a date is
rendered as text.
"""

import re
import logging
from datetime import datetime, date, timezone
from email.utils import format_datetime

DEFAULT_FORMAT = '%B %d, %Y'
READABLE_FORMAT = '%d %b %Y'
HTML_DATE_FORMAT = '%Y-%m-%d'

INPUT_FORMATS = ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d', '%b %d, %Y', '%B %d, %Y']

# Directives strftime handles the same way on every platform.
KNOWN_DIRECTIVES = set('aAwdbBmyYHIpMSfzZjUWcxXGuV%')
DIRECTIVE_RE = re.compile(r'%(-?)(.?)')

logger = logging.getLogger('Quire.dates')


def to_naive_utc(value):
    """Aware datetimes become naive UTC so every post date compares."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value):
    """
    Parse a front matter date. Returns a naive datetime in UTC, or None if
    unparseable.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        for fmt in INPUT_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        try:
            return to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
    return None


def is_valid_format(fmt):
    """Check that every % directive in fmt is one strftime understands."""
    if not isinstance(fmt, str) or not fmt:
        return False
    for match in DIRECTIVE_RE.finditer(fmt):
        if match.group(2) not in KNOWN_DIRECTIVES:
            return False
    return True


def format_date(value, fmt=None):
    """Format a date value for display."""
    date_obj = parse_date(value)
    if date_obj is None:
        return '' if value is None else str(value)

    if fmt is None:
        fmt = DEFAULT_FORMAT
    elif not is_valid_format(fmt):
        logger.debug(f"Invalid date format {fmt!r}, using {DEFAULT_FORMAT!r}")
        fmt = DEFAULT_FORMAT

    # %-d is a glibc extension; emulate it everywhere.
    fmt = fmt.replace('%-d', str(date_obj.day)).replace('%-m', str(date_obj.month))
    try:
        return date_obj.strftime(fmt)
    except ValueError:
        return date_obj.strftime(DEFAULT_FORMAT)


def readable_date(value):
    return format_date(value, READABLE_FORMAT)


def html_date_string(value):
    return format_date(value, HTML_DATE_FORMAT)


def iso_date(value):
    date_obj = parse_date(value)
    if date_obj is None:
        return '' if value is None else str(value)
    return date_obj.isoformat()


def rfc822_date(value):
    """RFC 822 date for RSS. parse_date hands back UTC."""
    date_obj = parse_date(value)
    if date_obj is None:
        return ''
    return format_datetime(date_obj.replace(tzinfo=timezone.utc))


DATE_FILTERS = {
    'date': format_date,
    'readable_date': readable_date,
    'html_date_string': html_date_string,
    'iso_date': iso_date,
    'rfc822_date': rfc822_date,
}


def register_filters(env):
    """Install the date filters on a Jinja2 environment."""
    env.filters.update(DATE_FILTERS)
    return env
