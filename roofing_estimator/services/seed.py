# roofing_estimator/services/seed.py
"""Starter data loaded by ``flask seed``: pricing rules, a small catalog and a default macro."""

import logging

from roofing_estimator.models import db, PricingRule, LineItem, EstimateMacro, MacroLineItem
from roofing_estimator.services.quick_pricing import DEFAULT_PRICING_RULES

logger = logging.getLogger(__name__)

# (item_code, name, category, unit_type, material, labor, equipment, formula, taxable, sort_order)
STARTER_CATALOG = (
    ('RFG100', 'Tear Off - 1 Layer', 'tear_off', 'SQ', 5.0, 85.0, 15.0, 'SQ', False, 10),
    ('RFG220', 'Underlayment - Synthetic', 'underlayment', 'SQ', 15.0, 25.0, 5.0, 'SQ * 1.05', True, 20),
    ('RFG240', 'Ice & Water Shield', 'ice_water', 'SQ', 95.0, 35.0, 0.0, 'EAVE * 3 / 100', True, 30),
    ('FLS100', 'Drip Edge - Aluminum', 'drip_edge', 'LF', 1.5, 2.0, 0.25, 'EAVE + RAKE', True, 40),
    ('RFG300', 'Starter Strip', 'starter', 'LF', 0.9, 0.6, 0.0, 'EAVE + RAKE', True, 50),
    ('RFG420', 'Shingles - Architectural Laminate', 'shingles', 'SQ', 125.0, 95.0, 10.0, 'SQ * 1.10', True, 100),
    ('RFG500', 'Hip & Ridge Cap', 'ridge_cap', 'LF', 3.25, 2.5, 0.0, 'R + HIP', True, 110),
    ('FLS120', 'Valley Metal - W-Style', 'valley', 'LF', 4.5, 6.0, 0.5, 'VAL * 1.05', True, 120),
    ('VNT100', 'Ridge Vent - Shingle Over', 'ventilation', 'LF', 3.5, 4.0, 0.5, 'R', True, 130),
    ('FLS140', 'Pipe Boot - Neoprene', 'pipe_boots', 'EA', 18.0, 35.0, 0.0, 'PIPE_COUNT', True, 140),
    ('FLS130', 'Chimney Flashing Kit', 'chimney', 'EA', 85.0, 150.0, 15.0, 'CHIMNEY_COUNT', True, 150),
    ('RFG900', 'Steep Roof Charge', 'steep_charge', 'SQ', 0.0, 25.0, 5.0, 'STEEP_CHARGE_SQ', False, 160),
    ('DSP100', 'Dumpster & Disposal', 'disposal', 'LS', 0.0, 0.0, 450.0, '1', False, 900),
    ('PRM100', 'Building Permit', 'permit', 'LS', 0.0, 0.0, 0.0, '1', False, 910),
)

DEFAULT_MACRO_NAME = 'Asphalt Shingle Replacement'
# Codes that start unselected in the default macro
OPTIONAL_CODES = {'RFG240', 'PRM100'}


def seed_pricing_rules():
    created = 0
    for rule in DEFAULT_PRICING_RULES:
        if PricingRule.query.filter_by(rule_key=rule.rule_key).first():
            continue
        db.session.add(PricingRule(
            rule_key=rule.rule_key,
            rule_category=rule.rule_category,
            display_name=rule.display_name,
            base_rate=rule.base_rate,
            unit=rule.unit,
            multiplier=rule.multiplier,
            flat_fee=rule.flat_fee,
            min_charge=rule.min_charge,
            max_charge=rule.max_charge,
        ))
        created += 1
    return created


def seed_catalog():
    items = {}
    created = 0
    for code, name, category, unit_type, material, labor, equipment, formula, taxable, order in STARTER_CATALOG:
        item = LineItem.query.filter_by(item_code=code).first()
        if item is None:
            item = LineItem(
                item_code=code,
                name=name,
                category=category,
                unit_type=unit_type,
                base_material_cost=material,
                base_labor_cost=labor,
                base_equipment_cost=equipment,
                quantity_formula=formula,
                is_taxable=taxable,
                sort_order=order,
            )
            db.session.add(item)
            created += 1
        items[code] = item
    return items, created


def seed_default_macro(items):
    if EstimateMacro.query.filter_by(name=DEFAULT_MACRO_NAME).first():
        return False

    macro = EstimateMacro(
        name=DEFAULT_MACRO_NAME,
        description='Full tear-off and re-roof with architectural shingles',
        roof_type='asphalt_shingle',
        job_type='full_replacement',
        is_default=True,
        is_system=True,
    )
    for position, (code, item) in enumerate(items.items()):
        optional = code in OPTIONAL_CODES
        macro.line_items.append(MacroLineItem(
            line_item=item,
            is_optional=optional,
            is_selected_by_default=not optional,
            sort_order=position,
        ))
    db.session.add(macro)
    return True


def seed_all():
    """Insert whatever starter data is missing. Safe to run repeatedly."""
    try:
        rules = seed_pricing_rules()
        items, catalog = seed_catalog()
        db.session.flush()
        macro = seed_default_macro(items)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Seeded {rules} pricing rules, {catalog} catalog items, default macro: {macro}")
    return {'pricing_rules': rules, 'line_items': catalog, 'default_macro': macro}
