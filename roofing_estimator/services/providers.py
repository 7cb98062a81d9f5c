# roofing_estimator/services/providers.py
"""
Lookups the engines depend on: pricing rules, leads and their measurements,
catalog items, macros and geographic regions. Missing records raise
NotFoundError; an empty or unreachable rule store falls back to the built-in
rule set.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from roofing_estimator.errors import NotFoundError
from roofing_estimator.models import (
    db, Lead, RoofSketch, PricingRule, LineItem, EstimateMacro, GeographicPricing, DetailedEstimate,
)
from roofing_estimator.services.geometry import resolve, resolve_from_intake, resolve_from_sketch
from roofing_estimator.services.quick_pricing import DEFAULT_PRICING_RULES, Rule
from roofing_estimator.services.validation import validate_zip, zip_prefix

logger = logging.getLogger(__name__)


def load_pricing_rules():
    """
    Active pricing rules as ``(rules, used_defaults)``.

    The built-in rules keep quick estimates working when the rules table is
    empty or the database cannot be read. The fallback is logged, never raised.
    """
    try:
        rows = PricingRule.query.filter_by(is_active=True).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Pricing rules unavailable, using built-in defaults: {e}")
        return DEFAULT_PRICING_RULES, True

    if not rows:
        logger.warning("No active pricing rules configured, using built-in defaults")
        return DEFAULT_PRICING_RULES, True
    return tuple(Rule.from_source(row) for row in rows), False


def get_lead(lead_id):
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError(f"Lead {lead_id} not found", details={'lead_id': lead_id})
    return lead


def latest_sketch(lead):
    return (RoofSketch.query
            .filter_by(lead_id=lead.id)
            .order_by(RoofSketch.created_at.desc(), RoofSketch.id.desc())
            .first())


def resolve_lead_variables(lead, measurements=None):
    """
    Roof variables for a lead as ``(variables, sketch)``.

    Explicit measurements win, then the newest sketch, then the rough
    intake approximation.
    """
    if measurements:
        return resolve(measurements), None

    sketch = latest_sketch(lead)
    if sketch is not None:
        return resolve_from_sketch(sketch.to_resolver_input()), sketch

    intake = lead.intake.to_dict() if lead.intake else {}
    logger.info(f"Lead {lead.id} has no roof sketch, approximating geometry from intake")
    return resolve_from_intake(intake), None


def get_line_item(line_item_id, active_only=True):
    item = db.session.get(LineItem, line_item_id)
    if item is None or (active_only and not item.is_active):
        raise NotFoundError(f"Line item {line_item_id} not found", details={'line_item_id': line_item_id})
    return item


def get_macro(macro_id, active_only=True):
    macro = db.session.get(EstimateMacro, macro_id)
    if macro is None or (active_only and not macro.is_active):
        raise NotFoundError(f"Macro {macro_id} not found", details={'macro_id': macro_id})
    return macro


def get_detailed_estimate(estimate_id):
    estimate = db.session.get(DetailedEstimate, estimate_id)
    if estimate is None:
        raise NotFoundError(f"Estimate {estimate_id} not found", details={'estimate_id': estimate_id})
    return estimate


def get_region(region_id):
    region = db.session.get(GeographicPricing, region_id)
    if region is None or not region.is_active:
        raise NotFoundError(f"Geographic region {region_id} not found", details={'region_id': region_id})
    return region


def find_region_by_zip(zip_code):
    """
    Active region containing ``zip_code``. County-level regions win over
    state-wide ones; remaining ties go to the lowest id.
    """
    regions = (GeographicPricing.query
               .filter_by(is_active=True)
               .order_by(GeographicPricing.id)
               .all())
    matches = [region for region in regions if region.covers_zip(zip_code)]
    if not matches:
        return None
    matches.sort(key=lambda region: (region.county is None, region.id))
    return matches[0]


def find_region(region_id=None, zip_code=None, lead=None):
    """
    Region for an estimate: an explicit id must exist, an explicit zip must
    be well formed, and the lead's own address zip is the last resort.
    """
    if region_id is not None:
        return get_region(region_id)
    if zip_code:
        return find_region_by_zip(validate_zip(zip_code))
    if lead is not None:
        lead_zip = zip_prefix(lead.zip_code)
        if lead_zip:
            return find_region_by_zip(lead_zip)
    return None
