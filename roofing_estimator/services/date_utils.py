# roofing_estimator/services/date_utils.py
import logging
from datetime import datetime, date, timedelta

import pytz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'America/Los_Angeles'


def utc_now():
    """Timezone-aware current time in UTC. Used for every created/updated stamp."""
    return datetime.now(pytz.utc)


def business_timezone(name=None):
    try:
        return pytz.timezone(name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', falling back to {DEFAULT_TIMEZONE}")
        return pytz.timezone(DEFAULT_TIMEZONE)


def business_today(timezone_name=None, now=None):
    """Calendar date in the business timezone, so quotes expire on local days."""
    now = now or utc_now()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(business_timezone(timezone_name)).date()


def valid_until(days, timezone_name=None, now=None):
    return business_today(timezone_name, now) + timedelta(days=days)


def format_date_for_response(value):
    """ISO string for a date or datetime, None passes through."""
    if not value:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
