# roofing_estimator/services/estimate_service.py
"""
Creates, versions and updates persisted estimates.

Quick estimates and detailed estimates are separate version lines. For each
lead and each line exactly one record is current (``is_superseded`` false).
New records always go through ``supersede_and_insert`` so closing the old
version and opening the new one happen in one transaction.
"""

import logging

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from roofing_estimator.errors import ConflictError, NotFoundError, ValidationError
from roofing_estimator.models import (
    db, QuickEstimate, DetailedEstimate, EstimateLineItem, PriceAdjustment,
)
from roofing_estimator.models.detailed_estimate import ESTIMATE_STATUSES, STATUS_TRANSITIONS
from roofing_estimator.services import providers
from roofing_estimator.services.date_utils import valid_until
from roofing_estimator.services.detailed_engine import (
    CalculatedLineItem,
    CatalogItem,
    EstimateOptions,
    GeographicMode,
    GeographicMultipliers,
    LineItemInput,
    TaxPolicy,
    apply_price_adjustment,
    calculate_estimate,
    expand_macro,
    summarize,
)
from roofing_estimator.services.quick_pricing import calculate_quick_estimate
from roofing_estimator.services.validation import (
    bool_field, intake_fields, int_field, number_field, text_field,
)

logger = logging.getLogger(__name__)


def supersede_and_insert(model, record):
    """
    Close the lead's current record of ``model`` and persist ``record`` as the
    next version, atomically.

    The current row is read with a row lock where the database supports it.
    The unique (lead_id, version) constraint and the partial unique index on
    current rows turn a lost race into a ConflictError instead of a second
    current estimate.
    """
    lead_id = record.lead_id
    try:
        (model.query
         .filter_by(lead_id=lead_id, is_superseded=False)
         .with_for_update()
         .all())
        latest_version = (db.session.query(func.max(model.version))
                          .filter(model.lead_id == lead_id)
                          .scalar()) or 0

        result = db.session.execute(
            update(model)
            .where(model.lead_id == lead_id, model.is_superseded.is_(False))
            .values(is_superseded=True)
        )

        record.version = latest_version + 1
        record.is_superseded = False
        db.session.add(record)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning(f"Version conflict creating {model.__tablename__} for lead {lead_id}: {e.orig}")
        raise ConflictError(
            'Another estimate was created for this lead at the same time. Please retry.',
            details={'lead_id': lead_id},
        )
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Created {model.__tablename__} v{record.version} for lead {lead_id} "
        f"(superseded {result.rowcount} previous)"
    )
    return record


def _estimate_options(overhead_percent=None, profit_percent=None, tax_percent=None):
    return EstimateOptions.from_config(
        current_app.config,
        overhead_percent=overhead_percent,
        profit_percent=profit_percent,
        tax_percent=tax_percent,
    )


def _options_for(estimate):
    config = current_app.config
    return EstimateOptions(
        overhead_percent=estimate.overhead_percent,
        profit_percent=estimate.profit_percent,
        tax_percent=estimate.tax_percent,
        max_overhead_percent=float(config.get('MAX_OVERHEAD_PERCENT', 50)),
        max_profit_percent=float(config.get('MAX_PROFIT_PERCENT', 50)),
        max_tax_percent=float(config.get('MAX_TAX_PERCENT', 20)),
        tax_policy=TaxPolicy(estimate.tax_policy),
        geographic_mode=GeographicMode(estimate.geographic_mode),
        range_low=float(config.get('RANGE_LOW_MULTIPLIER', 0.85)),
        range_high=float(config.get('RANGE_HIGH_MULTIPLIER', 1.25)),
    )


def _geography_for(estimate):
    # Only the stored factor matters once line costs are persisted
    factor = estimate.geographic_adjustment or 1.0
    return GeographicMultipliers(factor, factor, factor, region_id=estimate.geographic_pricing_id)


def _manual_inputs(selections):
    """Line item inputs from an explicit selection of catalog items."""
    inputs = []
    for index, selection in enumerate(selections):
        if not isinstance(selection, dict):
            selection = {'line_item_id': selection}
        line_item_id = selection.get('line_item_id')
        if line_item_id is None:
            raise ValidationError('Each line item needs a line_item_id', details={'index': index})
        item = CatalogItem.from_source(providers.get_line_item(line_item_id))
        inputs.append(LineItemInput(
            item=item,
            quantity_formula=text_field(selection, 'quantity_formula', max_length=200),
            waste_factor=number_field(selection, 'waste_factor', minimum=1),
            quantity=number_field(selection, 'quantity', minimum=0),
            material_unit_cost=number_field(selection, 'material_unit_cost', minimum=0),
            labor_unit_cost=number_field(selection, 'labor_unit_cost', minimum=0),
            equipment_unit_cost=number_field(selection, 'equipment_unit_cost', minimum=0),
            is_included=bool_field(selection, 'is_included', True),
            is_optional=bool_field(selection, 'is_optional', False),
            sort_order=int_field(selection, 'sort_order', default=index),
            group_name=text_field(selection, 'group_name', max_length=100),
            notes=text_field(selection, 'notes'),
        ))
    return inputs


def _build_estimate(lead, calculation, variables, options, **fields):
    estimate = DetailedEstimate(
        lead_id=lead.id,
        status='draft',
        variables=variables.to_dict(),
        tax_policy=TaxPolicy(options.tax_policy).value,
        geographic_mode=GeographicMode(options.geographic_mode).value,
        **fields,
    )
    estimate.apply_totals(calculation.totals)
    estimate.line_items = [EstimateLineItem.from_calculated(item) for item in calculation.line_items]
    return estimate


def create_detailed_estimate(lead_id, macro_id=None, line_items=None, chosen_line_item_ids=None,
                             region_id=None, zip_code=None, measurements=None,
                             overhead_percent=None, profit_percent=None, tax_percent=None,
                             name=None, notes=None):
    """
    Price a new detailed estimate for a lead and persist it as the next version.

    Inputs come from a macro (``macro_id``) or an explicit list of catalog
    selections (``line_items``). Everything is validated and calculated before
    anything is written, so a failure leaves no partial estimate behind.
    """
    options = _estimate_options(overhead_percent, profit_percent, tax_percent)
    lead = providers.get_lead(lead_id)

    macro = None
    if macro_id is not None:
        macro = providers.get_macro(macro_id)
        inputs = expand_macro(macro.line_items, chosen_line_item_ids)
    elif line_items:
        inputs = _manual_inputs(line_items)
    else:
        raise ValidationError('A macro_id or at least one line item is required')

    if not inputs:
        raise ValidationError('The selected macro has no active line items', details={'macro_id': macro_id})

    region = providers.find_region(region_id=region_id, zip_code=zip_code, lead=lead)
    variables, sketch = providers.resolve_lead_variables(lead, measurements)
    calculation = calculate_estimate(inputs, variables, options, GeographicMultipliers.from_region(region))

    estimate = _build_estimate(
        lead, calculation, variables, options,
        name=name or (macro.name if macro else 'Custom Estimate'),
        source_macro_id=macro.id if macro else None,
        sketch_id=sketch.id if sketch else None,
        geographic_pricing_id=region.id if region else None,
        notes=notes,
    )
    if macro is not None:
        macro.usage_count = (macro.usage_count or 0) + 1

    return supersede_and_insert(DetailedEstimate, estimate)


def current_detailed_estimates(lead_id):
    providers.get_lead(lead_id)
    return (DetailedEstimate.query
            .filter_by(lead_id=lead_id, is_superseded=False)
            .order_by(DetailedEstimate.version.desc())
            .all())


def estimate_history(lead_id):
    providers.get_lead(lead_id)
    return (DetailedEstimate.query
            .filter_by(lead_id=lead_id)
            .order_by(DetailedEstimate.version.desc())
            .all())


def _require_editable(estimate):
    if estimate.is_superseded:
        raise ConflictError(
            f"Estimate {estimate.id} has been superseded by a newer version",
            details={'estimate_id': estimate.id, 'version': estimate.version},
        )
    if estimate.status != 'draft':
        raise ConflictError(
            f"Estimate {estimate.id} is {estimate.status} and can no longer be edited",
            details={'estimate_id': estimate.id, 'status': estimate.status},
        )


def _replay_adjustments(estimate):
    """Re-apply recorded price adjustments on top of a recalculated price."""
    if not estimate.price_adjustments:
        estimate.adjusted_price = None
        return
    price = estimate.price_likely
    for adjustment in estimate.price_adjustments:
        amount, new_price = apply_price_adjustment(price, adjustment.adjustment_type, adjustment.adjustment_value)
        adjustment.original_price = price
        adjustment.adjustment_amount = amount
        adjustment.new_price = new_price
        price = new_price
    estimate.adjusted_price = price


def set_line_item_inclusion(estimate_id, estimate_line_item_id, included):
    """
    Include or exclude one line of a draft estimate and refresh the totals.

    Quantities and line totals are left untouched; only the aggregates move.
    """
    estimate = providers.get_detailed_estimate(estimate_id)
    _require_editable(estimate)

    line = next((item for item in estimate.line_items if item.id == estimate_line_item_id), None)
    if line is None:
        raise NotFoundError(
            f"Line item {estimate_line_item_id} not found on estimate {estimate_id}",
            details={'estimate_id': estimate_id, 'line_id': estimate_line_item_id},
        )

    try:
        line.is_included = bool(included)
        totals = summarize(
            [CalculatedLineItem.from_source(item) for item in estimate.line_items],
            _options_for(estimate),
            _geography_for(estimate),
        )
        estimate.apply_totals(totals)
        _replay_adjustments(estimate)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Estimate {estimate_id}: line {estimate_line_item_id} included={bool(included)}")
    return estimate


def update_estimate_status(estimate_id, status):
    """Move an estimate along draft -> approved/sent. Totals are not recalculated."""
    if status not in ESTIMATE_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ESTIMATE_STATUSES)}",
                              details={'status': status})

    estimate = providers.get_detailed_estimate(estimate_id)
    if estimate.is_superseded:
        raise ConflictError(f"Estimate {estimate_id} has been superseded", details={'estimate_id': estimate_id})
    if status == estimate.status:
        return estimate
    if status not in STATUS_TRANSITIONS[estimate.status]:
        raise ConflictError(
            f"Cannot change estimate status from {estimate.status} to {status}",
            details={'from': estimate.status, 'to': status},
        )

    try:
        estimate.status = status
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Estimate {estimate_id} status changed to {status}")
    return estimate


def recalculate_estimate(estimate_id, measurements=None):
    """
    Re-measure a draft estimate and cut a new version.

    Formula quantities are re-evaluated against the lead's current roof
    variables. Manual quantities, stored unit costs, waste factors and
    inclusion flags carry over unchanged.
    """
    previous = providers.get_detailed_estimate(estimate_id)
    _require_editable(previous)
    lead = providers.get_lead(previous.lead_id)

    inputs = []
    for line in previous.line_items:
        item = CatalogItem(
            line_item_id=line.line_item_id,
            item_code=line.item_code,
            name=line.name,
            category=line.category,
            unit_type=line.unit_type,
            quantity_formula=line.quantity_formula,
            default_waste_factor=line.waste_factor,
            is_taxable=line.is_taxable,
            sort_order=line.sort_order,
        )
        inputs.append(LineItemInput(
            item=item,
            quantity=None if line.quantity_formula else line.quantity,
            material_unit_cost=line.material_unit_cost,
            labor_unit_cost=line.labor_unit_cost,
            equipment_unit_cost=line.equipment_unit_cost,
            is_included=line.is_included,
            is_optional=line.is_optional,
            sort_order=line.sort_order,
            group_name=line.group_name,
            notes=line.notes,
        ))

    variables, sketch = providers.resolve_lead_variables(lead, measurements)
    options = _options_for(previous)
    # Unit costs are carried over as stored, so only the final factor may apply again
    geography = _geography_for(previous)
    calculation = calculate_estimate(inputs, variables, options, geography)

    estimate = _build_estimate(
        lead, calculation, variables, options,
        name=previous.name,
        source_macro_id=previous.source_macro_id,
        sketch_id=sketch.id if sketch else previous.sketch_id,
        geographic_pricing_id=previous.geographic_pricing_id,
        notes=previous.notes,
    )
    return supersede_and_insert(DetailedEstimate, estimate)


def add_price_adjustment(estimate_id, adjustment_type, value, description=None, reason=None):
    estimate = providers.get_detailed_estimate(estimate_id)
    _require_editable(estimate)

    base_price = estimate.adjusted_price if estimate.adjusted_price is not None else estimate.price_likely
    amount, new_price = apply_price_adjustment(base_price, adjustment_type, value)

    try:
        adjustment = PriceAdjustment(
            estimate_id=estimate.id,
            adjustment_type=adjustment_type,
            adjustment_value=float(value),
            adjustment_amount=amount,
            original_price=base_price,
            new_price=new_price,
            description=description,
            internal_reason=reason,
        )
        db.session.add(adjustment)
        estimate.adjusted_price = new_price
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Estimate {estimate_id}: {adjustment_type} {value} -> {new_price:.2f}")
    return adjustment


def generate_quick_estimate(lead_id, intake_overrides=None):
    """Price a lead's intake answers and persist the result as the next quick-estimate version."""
    lead = providers.get_lead(lead_id)
    intake = lead.intake.to_dict() if lead.intake else {}
    if intake_overrides:
        if not isinstance(intake_overrides, dict):
            raise ValidationError('Intake overrides must be an object')
        intake.update(intake_fields(intake_overrides))

    rules, used_defaults = providers.load_pricing_rules()
    result = calculate_quick_estimate(intake, rules)

    record = QuickEstimate(
        lead_id=lead.id,
        base_cost=result.base_cost,
        material_cost=result.material_cost,
        labor_cost=result.labor_cost,
        price_low=result.price_low,
        price_likely=result.price_likely,
        price_high=result.price_high,
        adjustments=[adjustment.to_dict() for adjustment in result.adjustments],
        input_snapshot=intake,
        rules_snapshot=[rule.to_dict() for rule in rules],
        used_default_rules=used_defaults,
        valid_until=valid_until(
            current_app.config.get('QUICK_ESTIMATE_VALID_DAYS', 30),
            current_app.config.get('TIMEZONE'),
        ),
    )
    return supersede_and_insert(QuickEstimate, record)


def current_quick_estimate(lead_id):
    providers.get_lead(lead_id)
    return QuickEstimate.query.filter_by(lead_id=lead_id, is_superseded=False).first()


__all__ = [
    'supersede_and_insert',
    'create_detailed_estimate',
    'current_detailed_estimates',
    'estimate_history',
    'set_line_item_inclusion',
    'update_estimate_status',
    'recalculate_estimate',
    'add_price_adjustment',
    'generate_quick_estimate',
    'current_quick_estimate',
]
