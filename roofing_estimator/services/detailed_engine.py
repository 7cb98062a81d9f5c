# roofing_estimator/services/detailed_engine.py
"""
Detailed estimate calculation.

Everything in this module is pure: inputs are plain dataclasses built from
catalog rows, outputs are frozen dataclasses that the estimate service
persists. Money is carried at full precision until the final three-tier
rounding step; ``to_dict`` methods round to cents for presentation.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from roofing_estimator.errors import ValidationError
from roofing_estimator.services.formula import evaluate_formula
from roofing_estimator.services.money_utils import (
    DEFAULT_RANGE_HIGH,
    DEFAULT_RANGE_LOW,
    round_half_up,
    three_tier_prices,
    to_cents,
)

logger = logging.getLogger(__name__)

DEFAULT_OVERHEAD_PERCENT = 10.0
DEFAULT_PROFIT_PERCENT = 15.0
DEFAULT_TAX_PERCENT = 0.0
MAX_OVERHEAD_PERCENT = 50.0
MAX_PROFIT_PERCENT = 50.0
MAX_TAX_PERCENT = 20.0
MAX_DISCOUNT_PERCENT = 50.0

# Used by cost_per_square when no shingle line gives a better figure
DEFAULT_SUMMARY_SQUARES = 20


class TaxPolicy(str, Enum):
    # Tax only the line totals of included taxable items
    ITEMS = 'items'
    # Also tax the overhead and profit attributable to taxable items
    PRORATED_MARKUP = 'prorated_markup'


class GeographicMode(str, Enum):
    # One factor, the mean of the three region multipliers, scales the final price
    MEAN = 'mean'
    # Each unit cost is scaled by its own region multiplier before aggregation
    PER_CATEGORY = 'per_category'


class AdjustmentType(str, Enum):
    DISCOUNT_PERCENT = 'discount_percent'
    DISCOUNT_FIXED = 'discount_fixed'
    PRICE_OVERRIDE = 'price_override'


def _value(source, name, default=None):
    if isinstance(source, dict):
        value = source.get(name, default)
    else:
        value = getattr(source, name, default)
    return default if value is None else value


@dataclass(frozen=True)
class CatalogItem:
    """Snapshot of a catalog line item taken at calculation time."""

    line_item_id: Optional[int]
    item_code: str
    name: str
    category: str
    unit_type: str = 'EA'
    material_cost: float = 0.0
    labor_cost: float = 0.0
    equipment_cost: float = 0.0
    quantity_formula: Optional[str] = None
    default_waste_factor: float = 1.0
    is_taxable: bool = True
    sort_order: int = 0
    is_active: bool = True

    @classmethod
    def from_source(cls, source):
        if isinstance(source, cls):
            return source
        return cls(
            line_item_id=_value(source, 'id'),
            item_code=_value(source, 'item_code', ''),
            name=_value(source, 'name', ''),
            category=_value(source, 'category', 'other'),
            unit_type=_value(source, 'unit_type', 'EA'),
            material_cost=float(_value(source, 'base_material_cost', 0.0)),
            labor_cost=float(_value(source, 'base_labor_cost', 0.0)),
            equipment_cost=float(_value(source, 'base_equipment_cost', 0.0)),
            quantity_formula=_value(source, 'quantity_formula'),
            default_waste_factor=float(_value(source, 'default_waste_factor', 1.0)),
            is_taxable=bool(_value(source, 'is_taxable', True)),
            sort_order=int(_value(source, 'sort_order', 0)),
            is_active=bool(_value(source, 'is_active', True)),
        )


@dataclass(frozen=True)
class GeographicMultipliers:
    material: float = 1.0
    labor: float = 1.0
    equipment: float = 1.0
    region_id: Optional[int] = None
    region_name: Optional[str] = None

    @property
    def mean(self) -> float:
        return (self.material + self.labor + self.equipment) / 3

    @classmethod
    def from_region(cls, region):
        if region is None:
            return NEUTRAL_GEOGRAPHY
        return cls(
            material=float(_value(region, 'material_multiplier', 1.0)),
            labor=float(_value(region, 'labor_multiplier', 1.0)),
            equipment=float(_value(region, 'equipment_multiplier', 1.0)),
            region_id=_value(region, 'id'),
            region_name=_value(region, 'name'),
        )


NEUTRAL_GEOGRAPHY = GeographicMultipliers()


@dataclass
class LineItemInput:
    """A catalog item plus the per-estimate overrides applied to it."""

    item: CatalogItem
    quantity_formula: Optional[str] = None
    waste_factor: Optional[float] = None
    quantity: Optional[float] = None
    material_unit_cost: Optional[float] = None
    labor_unit_cost: Optional[float] = None
    equipment_unit_cost: Optional[float] = None
    is_included: bool = True
    is_optional: bool = False
    sort_order: Optional[int] = None
    group_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class CalculatedLineItem:
    line_item_id: Optional[int]
    item_code: str
    name: str
    category: str
    unit_type: str
    quantity: float
    quantity_formula: Optional[str]
    waste_factor: float
    quantity_with_waste: float
    material_unit_cost: float
    labor_unit_cost: float
    equipment_unit_cost: float
    material_total: float
    labor_total: float
    equipment_total: float
    line_total: float
    is_included: bool = True
    is_optional: bool = False
    is_taxable: bool = True
    sort_order: int = 0
    group_name: Optional[str] = None
    notes: Optional[str] = None

    def with_inclusion(self, included):
        return replace(self, is_included=bool(included))

    @classmethod
    def from_source(cls, source):
        """Rebuild from a persisted EstimateLineItem row."""
        return cls(**{name: _value(source, name) for name in cls.__dataclass_fields__})


@dataclass(frozen=True)
class EstimateOptions:
    overhead_percent: float = DEFAULT_OVERHEAD_PERCENT
    profit_percent: float = DEFAULT_PROFIT_PERCENT
    tax_percent: float = DEFAULT_TAX_PERCENT
    max_overhead_percent: float = MAX_OVERHEAD_PERCENT
    max_profit_percent: float = MAX_PROFIT_PERCENT
    max_tax_percent: float = MAX_TAX_PERCENT
    tax_policy: TaxPolicy = TaxPolicy.ITEMS
    geographic_mode: GeographicMode = GeographicMode.MEAN
    range_low: float = DEFAULT_RANGE_LOW
    range_high: float = DEFAULT_RANGE_HIGH

    @classmethod
    def from_config(cls, config, overhead_percent=None, profit_percent=None, tax_percent=None):
        """Build options from Flask config, letting the caller override the percents."""
        options = cls(
            overhead_percent=_percent(overhead_percent, config.get('DEFAULT_OVERHEAD_PERCENT', DEFAULT_OVERHEAD_PERCENT), 'overhead_percent'),
            profit_percent=_percent(profit_percent, config.get('DEFAULT_PROFIT_PERCENT', DEFAULT_PROFIT_PERCENT), 'profit_percent'),
            tax_percent=_percent(tax_percent, config.get('DEFAULT_TAX_PERCENT', DEFAULT_TAX_PERCENT), 'tax_percent'),
            max_overhead_percent=float(config.get('MAX_OVERHEAD_PERCENT', MAX_OVERHEAD_PERCENT)),
            max_profit_percent=float(config.get('MAX_PROFIT_PERCENT', MAX_PROFIT_PERCENT)),
            max_tax_percent=float(config.get('MAX_TAX_PERCENT', MAX_TAX_PERCENT)),
            tax_policy=TaxPolicy(config.get('TAX_POLICY', TaxPolicy.ITEMS.value)),
            geographic_mode=GeographicMode(config.get('GEOGRAPHIC_ADJUSTMENT_MODE', GeographicMode.MEAN.value)),
            range_low=float(config.get('RANGE_LOW_MULTIPLIER', DEFAULT_RANGE_LOW)),
            range_high=float(config.get('RANGE_HIGH_MULTIPLIER', DEFAULT_RANGE_HIGH)),
        )
        options.validate()
        return options

    def validate(self):
        bounds = (
            ('overhead_percent', self.overhead_percent, self.max_overhead_percent),
            ('profit_percent', self.profit_percent, self.max_profit_percent),
            ('tax_percent', self.tax_percent, self.max_tax_percent),
        )
        for name, value, maximum in bounds:
            if value < 0 or value > maximum:
                raise ValidationError(
                    f"{name} must be between 0 and {maximum:g}",
                    details={'field': name, 'value': value},
                )
        return self


def _percent(value, default, name):
    if value is None or value == '':
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", details={'field': name, 'value': value})


@dataclass(frozen=True)
class EstimateTotals:
    total_material: float
    total_labor: float
    total_equipment: float
    subtotal: float
    overhead_percent: float
    overhead_amount: float
    profit_percent: float
    profit_amount: float
    taxable_amount: float
    tax_percent: float
    tax_amount: float
    pre_adjustment_price: float
    geographic_adjustment: float
    price_low: int
    price_likely: int
    price_high: int

    def to_dict(self):
        data = {name: to_cents(getattr(self, name)) for name in self.__dataclass_fields__}
        data['geographic_adjustment'] = round_half_up(self.geographic_adjustment, 4)
        for name in ('price_low', 'price_likely', 'price_high'):
            data[name] = getattr(self, name)
        return data


@dataclass(frozen=True)
class EstimateCalculation:
    line_items: Tuple[CalculatedLineItem, ...]
    totals: EstimateTotals
    geography: GeographicMultipliers = field(default=NEUTRAL_GEOGRAPHY)


def _non_negative_override(value, name, item_code):
    if value is None:
        return None
    value = float(value)
    if value < 0:
        raise ValidationError(f"{name} cannot be negative for {item_code}",
                              details={'field': name, 'item_code': item_code, 'value': value})
    return value


def calculate_line_item(entry: LineItemInput, variables, geography=NEUTRAL_GEOGRAPHY,
                        mode=GeographicMode.MEAN, sort_order=0) -> CalculatedLineItem:
    item = entry.item
    formula = entry.quantity_formula or item.quantity_formula
    waste_factor = float(entry.waste_factor if entry.waste_factor is not None else item.default_waste_factor)
    if waste_factor < 1:
        raise ValidationError(f"Waste factor for {item.item_code} must be at least 1",
                              details={'item_code': item.item_code, 'waste_factor': waste_factor})

    manual_quantity = _non_negative_override(entry.quantity, 'quantity', item.item_code)
    if manual_quantity is not None:
        quantity = manual_quantity
        formula = None
    elif formula:
        quantity = max(0.0, evaluate_formula(formula, variables))
    else:
        quantity = 0.0
    quantity_with_waste = quantity * waste_factor

    scale = geography if GeographicMode(mode) == GeographicMode.PER_CATEGORY else NEUTRAL_GEOGRAPHY
    material_unit = _non_negative_override(entry.material_unit_cost, 'material_unit_cost', item.item_code)
    labor_unit = _non_negative_override(entry.labor_unit_cost, 'labor_unit_cost', item.item_code)
    equipment_unit = _non_negative_override(entry.equipment_unit_cost, 'equipment_unit_cost', item.item_code)
    if material_unit is None:
        material_unit = item.material_cost * scale.material
    if labor_unit is None:
        labor_unit = item.labor_cost * scale.labor
    if equipment_unit is None:
        equipment_unit = item.equipment_cost * scale.equipment

    material_total = quantity_with_waste * material_unit
    labor_total = quantity_with_waste * labor_unit
    equipment_total = quantity_with_waste * equipment_unit

    return CalculatedLineItem(
        line_item_id=item.line_item_id,
        item_code=item.item_code,
        name=item.name,
        category=item.category,
        unit_type=item.unit_type,
        quantity=quantity,
        quantity_formula=formula,
        waste_factor=waste_factor,
        quantity_with_waste=quantity_with_waste,
        material_unit_cost=material_unit,
        labor_unit_cost=labor_unit,
        equipment_unit_cost=equipment_unit,
        material_total=material_total,
        labor_total=labor_total,
        equipment_total=equipment_total,
        line_total=material_total + labor_total + equipment_total,
        is_included=entry.is_included,
        is_optional=entry.is_optional,
        is_taxable=item.is_taxable,
        sort_order=sort_order,
        group_name=entry.group_name,
        notes=entry.notes,
    )


def summarize(line_items, options: EstimateOptions = None, geography=NEUTRAL_GEOGRAPHY) -> EstimateTotals:
    """
    Aggregate line items into estimate totals.

    Only included items count. Markups apply in a fixed order: overhead on the
    subtotal, profit on subtotal plus overhead, then tax on the taxable base.
    """
    options = (options or EstimateOptions()).validate()
    included = [item for item in line_items if item.is_included]

    total_material = sum(item.material_total for item in included)
    total_labor = sum(item.labor_total for item in included)
    total_equipment = sum(item.equipment_total for item in included)
    subtotal = total_material + total_labor + total_equipment

    overhead_amount = subtotal * options.overhead_percent / 100
    profit_amount = (subtotal + overhead_amount) * options.profit_percent / 100

    taxable_amount = sum(item.line_total for item in included if item.is_taxable)
    if TaxPolicy(options.tax_policy) == TaxPolicy.PRORATED_MARKUP and subtotal > 0:
        taxable_amount += (overhead_amount + profit_amount) * taxable_amount / subtotal
    tax_amount = taxable_amount * options.tax_percent / 100

    pre_adjustment_price = subtotal + overhead_amount + profit_amount + tax_amount
    factor = geography.mean
    if GeographicMode(options.geographic_mode) == GeographicMode.MEAN:
        adjusted = pre_adjustment_price * factor
    else:
        adjusted = pre_adjustment_price

    price_low, price_likely, price_high = three_tier_prices(adjusted, options.range_low, options.range_high)

    return EstimateTotals(
        total_material=total_material,
        total_labor=total_labor,
        total_equipment=total_equipment,
        subtotal=subtotal,
        overhead_percent=options.overhead_percent,
        overhead_amount=overhead_amount,
        profit_percent=options.profit_percent,
        profit_amount=profit_amount,
        taxable_amount=taxable_amount,
        tax_percent=options.tax_percent,
        tax_amount=tax_amount,
        pre_adjustment_price=pre_adjustment_price,
        geographic_adjustment=factor,
        price_low=price_low,
        price_likely=price_likely,
        price_high=price_high,
    )


def calculate_estimate(inputs, variables, options: EstimateOptions = None,
                       geography=NEUTRAL_GEOGRAPHY) -> EstimateCalculation:
    options = (options or EstimateOptions()).validate()
    calculated = [
        calculate_line_item(
            entry,
            variables,
            geography,
            options.geographic_mode,
            sort_order=entry.sort_order if entry.sort_order is not None else (entry.item.sort_order or index),
        )
        for index, entry in enumerate(inputs)
    ]
    calculated.sort(key=lambda item: item.sort_order)
    totals = summarize(calculated, options, geography)
    logger.debug(
        f"Calculated {len(calculated)} line items: subtotal={totals.subtotal:.2f} "
        f"likely={totals.price_likely}"
    )
    return EstimateCalculation(line_items=tuple(calculated), totals=totals, geography=geography)


def expand_macro(macro_line_items, chosen_line_item_ids=None):
    """
    Turn a macro's line-item associations into calculation inputs.

    Every association is kept so optional items still appear on the estimate.
    An item counts toward totals when the macro selects it by default or the
    caller chose it explicitly. Associations whose catalog item has been
    retired are skipped.
    """
    chosen = set(chosen_line_item_ids or ())
    inputs = []
    for association in sorted(macro_line_items, key=lambda a: _value(a, 'sort_order', 0)):
        item = CatalogItem.from_source(_value(association, 'line_item'))
        if not item.is_active:
            logger.warning(f"Skipping inactive line item {item.item_code} in macro expansion")
            continue
        inputs.append(LineItemInput(
            item=item,
            quantity_formula=_value(association, 'quantity_formula'),
            waste_factor=_value(association, 'waste_factor'),
            material_unit_cost=_value(association, 'material_cost_override'),
            labor_unit_cost=_value(association, 'labor_cost_override'),
            equipment_unit_cost=_value(association, 'equipment_cost_override'),
            is_included=bool(_value(association, 'is_selected_by_default', True)) or item.line_item_id in chosen,
            is_optional=bool(_value(association, 'is_optional', False)),
            sort_order=_value(association, 'sort_order'),
            group_name=_value(association, 'group_name'),
            notes=_value(association, 'notes'),
        ))
    return inputs


def group_line_items(line_items):
    """Group items by group name, falling back to category, keeping first-seen order."""
    groups = OrderedDict()
    for item in line_items:
        groups.setdefault(item.group_name or item.category, []).append(item)
    return groups


def cost_per_square(total_cost, squares):
    if not squares or squares <= 0:
        return 0.0
    return round_half_up(total_cost / squares, 2)


def estimate_summary(calculation: EstimateCalculation, squares=None):
    totals = calculation.totals
    if squares is None:
        shingles = next(
            (item for item in calculation.line_items if item.unit_type == 'SQ' and item.category == 'shingles'),
            None,
        )
        squares = shingles.quantity_with_waste if shingles else DEFAULT_SUMMARY_SQUARES

    subtotal = totals.subtotal
    return {
        'total_cost': totals.price_likely,
        'cost_per_square': cost_per_square(totals.price_likely, squares),
        'material_percentage': round_half_up(totals.total_material / subtotal * 100) if subtotal > 0 else 0,
        'labor_percentage': round_half_up(totals.total_labor / subtotal * 100) if subtotal > 0 else 0,
        'included_items_count': sum(1 for item in calculation.line_items if item.is_included),
        'optional_items_count': sum(1 for item in calculation.line_items if item.is_optional),
    }


def apply_price_adjustment(base_price, adjustment_type, value):
    """
    Return ``(adjustment_amount, new_price)`` for a manual price change.

    Discounts larger than the price, percentage discounts over 50 and
    non-positive values are rejected.
    """
    try:
        kind = AdjustmentType(adjustment_type)
    except ValueError:
        raise ValidationError(f"Unknown adjustment type '{adjustment_type}'",
                              details={'allowed': [t.value for t in AdjustmentType]})
    value = float(value)
    if value <= 0:
        raise ValidationError('Adjustment value must be positive', details={'value': value})

    if kind == AdjustmentType.DISCOUNT_PERCENT:
        if value > MAX_DISCOUNT_PERCENT:
            raise ValidationError(f"Discount percentage cannot exceed {MAX_DISCOUNT_PERCENT:g}%")
        amount = base_price * value / 100
        new_price = base_price - amount
    elif kind == AdjustmentType.DISCOUNT_FIXED:
        if value > base_price:
            raise ValidationError('Discount cannot exceed the estimate price',
                                  details={'value': value, 'price': base_price})
        amount = value
        new_price = base_price - value
    else:
        amount = base_price - value
        new_price = value

    return amount, new_price
