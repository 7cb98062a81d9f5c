# roofing_estimator/services/validation.py
"""Request field checks shared by the services. Every failure is a ValidationError."""

import math
import re

from roofing_estimator.errors import ValidationError
from roofing_estimator.services.geometry import PITCH_CATEGORY_RISE

ZIP_PATTERN = re.compile(r'^\d{5}$')
STATE_PATTERN = re.compile(r'^[A-Z]{2}$')


def number_field(data, key, minimum=None, maximum=None, default=None, required=False):
    value = data.get(key) if data else None
    if value is None or value == '':
        if required:
            raise ValidationError(f"{key} is required", details={'field': key})
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number", details={'field': key})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number", details={'field': key, 'value': value})
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number", details={'field': key})
    if minimum is not None and number < minimum:
        raise ValidationError(f"{key} must be at least {minimum:g}", details={'field': key, 'value': number})
    if maximum is not None and number > maximum:
        raise ValidationError(f"{key} must be at most {maximum:g}", details={'field': key, 'value': number})
    return number


def int_field(data, key, minimum=None, maximum=None, default=None, required=False):
    number = number_field(data, key, minimum, maximum, default, required)
    if number is None:
        return None
    if number != int(number):
        raise ValidationError(f"{key} must be a whole number", details={'field': key, 'value': number})
    return int(number)


def text_field(data, key, max_length=None, default=None, required=False, choices=None):
    value = data.get(key) if data else None
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{key} is required", details={'field': key})
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", details={'field': key})
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters", details={'field': key})
    if choices is not None and value not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}",
                              details={'field': key, 'value': value})
    return value


def bool_field(data, key, default=None):
    value = data.get(key) if data else None
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', '1', 'yes'):
        return True
    if isinstance(value, str) and value.lower() in ('false', '0', 'no'):
        return False
    raise ValidationError(f"{key} must be a boolean", details={'field': key, 'value': value})


def validate_zip(zip_code):
    zip_code = (zip_code or '').strip()
    if not ZIP_PATTERN.match(zip_code):
        raise ValidationError('Zip codes must be 5 digits', details={'zip_code': zip_code})
    return zip_code


def zip_prefix(value):
    """First five digits of a stored address zip (handles ZIP+4), or None."""
    match = re.match(r'^\s*(\d{5})', value or '')
    return match.group(1) if match else None


def validate_state(state):
    state = (state or '').strip().upper()
    if not STATE_PATTERN.match(state):
        raise ValidationError('State must be a two-letter code', details={'state': state})
    return state


def intake_fields(data):
    """Checked intake answers. Fields missing from ``data`` are left out."""
    issues = data.get('issues')
    if issues is not None and not isinstance(issues, list):
        raise ValidationError('issues must be a list', details={'field': 'issues'})

    fields = {
        'job_type': text_field(data, 'job_type', max_length=30),
        'roof_size_sqft': number_field(data, 'roof_size_sqft', minimum=0),
        'roof_material': text_field(data, 'roof_material', max_length=30),
        'roof_pitch': text_field(data, 'roof_pitch', choices=tuple(PITCH_CATEGORY_RISE)),
        'stories': int_field(data, 'stories', minimum=1, maximum=10),
        'has_skylights': bool_field(data, 'has_skylights'),
        'has_chimneys': bool_field(data, 'has_chimneys'),
        'has_solar_panels': bool_field(data, 'has_solar_panels'),
        'issues': [str(issue) for issue in issues] if issues is not None else None,
        'timeline_urgency': text_field(data, 'timeline_urgency', max_length=20),
    }
    return {key: value for key, value in fields.items() if value is not None}
