# roofing_estimator/services/lead_service.py
"""Leads, their intake answers and measured roof sketches."""

import logging

from roofing_estimator.errors import ValidationError
from roofing_estimator.models import db, Lead, LeadIntake, RoofSketch, RoofSlope
from roofing_estimator.services import providers
from roofing_estimator.services.geometry import MAX_PITCH, resolve_from_sketch, validate_variables
from roofing_estimator.services.validation import (
    intake_fields, int_field, number_field, text_field, validate_state, zip_prefix,
)

logger = logging.getLogger(__name__)

SLOPE_FIELDS = ('sqft', 'pitch', 'eave_lf', 'ridge_lf', 'valley_lf', 'hip_lf', 'rake_lf')


def create_lead(data):
    state = data.get('state')
    zip_code = text_field(data, 'zip_code', max_length=10)
    if zip_code and zip_prefix(zip_code) is None:
        raise ValidationError('zip_code must start with 5 digits', details={'zip_code': zip_code})

    lead = Lead(
        name=text_field(data, 'name', max_length=100, required=True),
        email=text_field(data, 'email', max_length=100),
        phone=text_field(data, 'phone', max_length=20),
        street_address=text_field(data, 'street_address', max_length=200),
        city=text_field(data, 'city', max_length=100),
        state=validate_state(state) if state else None,
        zip_code=zip_code,
    )
    intake = data.get('intake')
    if intake:
        lead.intake = LeadIntake(**intake_fields(intake))

    try:
        db.session.add(lead)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Created lead {lead.id} ({lead.zip_code or 'no zip'})")
    return lead


def update_intake(lead_id, data):
    lead = providers.get_lead(lead_id)
    fields = intake_fields(data)
    try:
        if lead.intake is None:
            lead.intake = LeadIntake(**fields)
        else:
            for key, value in fields.items():
                setattr(lead.intake, key, value)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return lead


def _slope_records(slopes):
    if not isinstance(slopes, list):
        raise ValidationError('slopes must be a list', details={'field': 'slopes'})

    records = []
    seen = set()
    for index, slope in enumerate(slopes):
        if not isinstance(slope, dict):
            raise ValidationError('Each slope must be an object', details={'index': index})
        number = int_field(slope, 'slope_number', minimum=1, default=index + 1)
        if number in seen:
            raise ValidationError(f"Duplicate slope number {number}", details={'slope_number': number})
        seen.add(number)
        values = {key: number_field(slope, key, minimum=0, default=0.0) for key in SLOPE_FIELDS}
        number_field(slope, 'pitch', maximum=MAX_PITCH)
        records.append(RoofSlope(slope_number=number, **values))
    return records


def save_sketch(lead_id, data):
    """
    Store a measured roof for a lead.

    The measurements are resolved before saving so a sketch that cannot be
    priced is rejected up front. The newest sketch is the one estimates use.
    """
    lead = providers.get_lead(lead_id)

    sketch = RoofSketch(
        lead_id=lead.id,
        measurement_source=text_field(data, 'measurement_source', max_length=30, default='manual'),
    )
    for key in RoofSketch.SKETCH_FIELDS:
        if key.endswith('_count'):
            setattr(sketch, key, int_field(data, key, minimum=0))
        else:
            setattr(sketch, key, number_field(data, key, minimum=0))
    sketch.slopes = _slope_records(data.get('slopes') or [])

    variables = resolve_from_sketch(sketch.to_resolver_input())
    check = validate_variables(variables)
    if not check['valid']:
        raise ValidationError('Sketch measurements are incomplete', details=check)

    try:
        db.session.add(sketch)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Saved roof sketch {sketch.id} for lead {lead.id}: {variables.squares:.2f} squares, "
                f"{len(sketch.slopes)} slopes")
    return sketch, variables, check['warnings']


def lead_variables(lead_id):
    lead = providers.get_lead(lead_id)
    variables, sketch = providers.resolve_lead_variables(lead)
    return variables, sketch, validate_variables(variables)
