# roofing_estimator/services/catalog_service.py
"""Administration of the line-item catalog, estimate macros and pricing regions."""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from roofing_estimator.errors import ConflictError, FormulaError, NotFoundError, ValidationError
from roofing_estimator.models import db, LineItem, EstimateMacro, MacroLineItem, GeographicPricing
from roofing_estimator.models.macro import ROOF_TYPES, JOB_TYPES
from roofing_estimator.services import providers
from roofing_estimator.services.formula import suggest_formula, validate_formula
from roofing_estimator.services.validation import (
    bool_field, int_field, number_field, text_field, validate_state, validate_zip,
)

logger = logging.getLogger(__name__)

UNIT_TYPES = ('SQ', 'SF', 'LF', 'EA', 'HR', 'DAY', 'LS')
MIN_WASTE_FACTOR = 1.0
MAX_WASTE_FACTOR = 2.0
MIN_REGION_MULTIPLIER = 0.5
MAX_REGION_MULTIPLIER = 3.0


def _checked_formula(formula):
    if formula is None:
        return None
    is_valid, error, _ = validate_formula(formula)
    if not is_valid:
        raise FormulaError(error, details={'formula': formula})
    return formula


def _commit(conflict_message, **details):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning(f"{conflict_message}: {e.orig}")
        raise ConflictError(conflict_message, details=details or None)
    except Exception:
        db.session.rollback()
        raise


# --- Line items ------------------------------------------------------------

def list_line_items(category=None, include_inactive=False):
    query = LineItem.query
    if not include_inactive:
        query = query.filter_by(is_active=True)
    if category:
        query = query.filter_by(category=category)
    return query.order_by(LineItem.category, LineItem.sort_order, LineItem.item_code).all()


def _line_item_fields(data, partial=False):
    required = not partial
    fields = {
        'item_code': text_field(data, 'item_code', max_length=40, required=required),
        'name': text_field(data, 'name', max_length=200, required=required),
        'description': text_field(data, 'description'),
        'category': text_field(data, 'category', max_length=40, required=required),
        'unit_type': text_field(data, 'unit_type', choices=UNIT_TYPES),
        'base_material_cost': number_field(data, 'base_material_cost', minimum=0),
        'base_labor_cost': number_field(data, 'base_labor_cost', minimum=0),
        'base_equipment_cost': number_field(data, 'base_equipment_cost', minimum=0),
        'quantity_formula': _checked_formula(text_field(data, 'quantity_formula', max_length=200)),
        'default_waste_factor': number_field(data, 'default_waste_factor',
                                             minimum=MIN_WASTE_FACTOR, maximum=MAX_WASTE_FACTOR),
        'is_taxable': bool_field(data, 'is_taxable'),
        'sort_order': int_field(data, 'sort_order'),
    }
    return {key: value for key, value in fields.items() if value is not None}


def create_line_item(data):
    fields = _line_item_fields(data)
    fields.setdefault('quantity_formula', suggest_formula(fields['category']))
    if LineItem.query.filter_by(item_code=fields['item_code']).first():
        raise ConflictError(f"Item code {fields['item_code']} already exists", details={'item_code': fields['item_code']})

    item = LineItem(**fields)
    db.session.add(item)
    _commit('Line item code already exists', item_code=fields['item_code'])
    logger.info(f"Created catalog line item {item.item_code}")
    return item


def update_line_item(line_item_id, data):
    item = providers.get_line_item(line_item_id, active_only=False)
    for key, value in _line_item_fields(data, partial=True).items():
        setattr(item, key, value)
    _commit('Line item code already exists', line_item_id=line_item_id)
    return item


def deactivate_line_item(line_item_id):
    """Retire a catalog item. Estimates that reference it keep their copy."""
    item = providers.get_line_item(line_item_id, active_only=False)
    item.is_active = False
    _commit('Could not deactivate line item', line_item_id=line_item_id)
    logger.info(f"Deactivated catalog line item {item.item_code}")
    return item


# --- Macros ----------------------------------------------------------------

def list_macros(roof_type=None, job_type=None):
    query = EstimateMacro.query.filter_by(is_active=True)
    if roof_type:
        query = query.filter(EstimateMacro.roof_type.in_((roof_type, 'any')))
    if job_type:
        query = query.filter(EstimateMacro.job_type.in_((job_type, 'any')))
    return query.order_by(EstimateMacro.is_default.desc(), EstimateMacro.usage_count.desc(),
                          EstimateMacro.name).all()


def _clear_other_defaults(macro):
    # Only one default macro per roof type / job type pair
    others = (EstimateMacro.query
              .filter(EstimateMacro.roof_type == macro.roof_type,
                      EstimateMacro.job_type == macro.job_type,
                      EstimateMacro.is_default.is_(True))
              .all())
    for other in others:
        if other is not macro:
            other.is_default = False


def create_macro(data):
    macro = EstimateMacro(
        name=text_field(data, 'name', max_length=100, required=True),
        description=text_field(data, 'description'),
        roof_type=text_field(data, 'roof_type', default='any', choices=ROOF_TYPES),
        job_type=text_field(data, 'job_type', default='any', choices=JOB_TYPES),
        is_default=bool_field(data, 'is_default', False),
    )
    if macro.is_default:
        _clear_other_defaults(macro)
    db.session.add(macro)
    _commit('Could not create macro')
    logger.info(f"Created macro '{macro.name}' ({macro.roof_type}/{macro.job_type})")
    return macro


def update_macro(macro_id, data):
    macro = providers.get_macro(macro_id)
    if macro.is_system:
        raise ConflictError('System macros cannot be modified', details={'macro_id': macro_id})

    name = text_field(data, 'name', max_length=100)
    if name is not None:
        macro.name = name
    if 'description' in data:
        macro.description = text_field(data, 'description')
    macro.roof_type = text_field(data, 'roof_type', default=macro.roof_type, choices=ROOF_TYPES)
    macro.job_type = text_field(data, 'job_type', default=macro.job_type, choices=JOB_TYPES)
    is_default = bool_field(data, 'is_default')
    if is_default is not None:
        macro.is_default = is_default
    if macro.is_default:
        _clear_other_defaults(macro)

    _commit('Could not update macro', macro_id=macro_id)
    return macro


def deactivate_macro(macro_id):
    macro = providers.get_macro(macro_id)
    if macro.is_system:
        raise ConflictError('System macros cannot be deleted', details={'macro_id': macro_id})
    macro.is_active = False
    macro.is_default = False
    _commit('Could not delete macro', macro_id=macro_id)
    logger.info(f"Deactivated macro {macro_id}")
    return macro


def add_line_item_to_macro(macro_id, data):
    """
    Attach a catalog item to a macro.

    A line item can appear in a macro only once. A duplicate is rejected
    with ConflictError and leaves the macro as it was.
    """
    macro = providers.get_macro(macro_id)
    line_item_id = int_field(data, 'line_item_id', required=True)
    item = providers.get_line_item(line_item_id)

    existing = MacroLineItem.query.filter_by(macro_id=macro.id, line_item_id=item.id).first()
    if existing is not None:
        raise ConflictError(
            f"Line item {item.item_code} is already in this macro",
            details={'macro_id': macro.id, 'line_item_id': item.id},
        )

    sort_order = int_field(data, 'sort_order')
    if sort_order is None:
        current_max = (db.session.query(func.max(MacroLineItem.sort_order))
                       .filter(MacroLineItem.macro_id == macro.id)
                       .scalar())
        sort_order = 0 if current_max is None else current_max + 1

    association = MacroLineItem(
        macro_id=macro.id,
        line_item_id=item.id,
        quantity_formula=_checked_formula(text_field(data, 'quantity_formula', max_length=200)),
        waste_factor=number_field(data, 'waste_factor', minimum=MIN_WASTE_FACTOR, maximum=MAX_WASTE_FACTOR),
        material_cost_override=number_field(data, 'material_cost_override', minimum=0),
        labor_cost_override=number_field(data, 'labor_cost_override', minimum=0),
        equipment_cost_override=number_field(data, 'equipment_cost_override', minimum=0),
        is_optional=bool_field(data, 'is_optional', False),
        is_selected_by_default=bool_field(data, 'is_selected_by_default', True),
        group_name=text_field(data, 'group_name', max_length=100),
        notes=text_field(data, 'notes'),
        sort_order=sort_order,
    )
    db.session.add(association)
    _commit('Line item is already in this macro', macro_id=macro.id, line_item_id=item.id)
    logger.info(f"Added line item {item.item_code} to macro {macro.id}")
    return association


def remove_line_item_from_macro(macro_id, line_item_id):
    macro = providers.get_macro(macro_id)
    if macro.is_system:
        raise ConflictError('System macros cannot be modified', details={'macro_id': macro_id})
    association = MacroLineItem.query.filter_by(macro_id=macro.id, line_item_id=line_item_id).first()
    if association is None:
        raise NotFoundError(
            f"Line item {line_item_id} is not in macro {macro_id}",
            details={'macro_id': macro_id, 'line_item_id': line_item_id},
        )
    db.session.delete(association)
    _commit('Could not remove line item from macro', macro_id=macro_id)


# --- Geographic pricing ----------------------------------------------------

def _region_fields(data, partial=False):
    required = not partial
    fields = {
        'name': text_field(data, 'name', max_length=100, required=required),
        'county': text_field(data, 'county', max_length=100),
    }
    if data.get('state') is not None or required:
        fields['state'] = validate_state(data.get('state'))
    if data.get('zip_codes') is not None:
        zip_codes = data.get('zip_codes')
        if not isinstance(zip_codes, list):
            raise ValidationError('zip_codes must be a list', details={'field': 'zip_codes'})
        fields['zip_codes'] = sorted({validate_zip(str(zip_code)) for zip_code in zip_codes})
    for key in ('material_multiplier', 'labor_multiplier', 'equipment_multiplier'):
        fields[key] = number_field(data, key, minimum=MIN_REGION_MULTIPLIER, maximum=MAX_REGION_MULTIPLIER)
    return {key: value for key, value in fields.items() if value is not None}


def list_regions(state=None):
    query = GeographicPricing.query.filter_by(is_active=True)
    if state:
        query = query.filter_by(state=state.upper())
    return query.order_by(GeographicPricing.state, GeographicPricing.name).all()


def create_region(data):
    region = GeographicPricing(**_region_fields(data))
    db.session.add(region)
    _commit('Could not create region')
    logger.info(f"Created pricing region '{region.name}' ({region.state})")
    return region


def update_region(region_id, data):
    region = providers.get_region(region_id)
    for key, value in _region_fields(data, partial=True).items():
        setattr(region, key, value)
    _commit('Could not update region', region_id=region_id)
    return region


def deactivate_region(region_id):
    region = providers.get_region(region_id)
    region.is_active = False
    _commit('Could not delete region', region_id=region_id)
    return region
