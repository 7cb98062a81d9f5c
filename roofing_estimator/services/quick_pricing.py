# roofing_estimator/services/quick_pricing.py
"""
Quick pricing engine.

Turns the answers from the lead intake form into a low/likely/high price
range by running them through a rule set. Every rule is a tagged value
(base rate, multiplier, flat fee, minimum charge or range spread) and the
interpreter below applies the categories in a fixed order:

    base rate -> material -> pitch -> stories -> urgency
              -> feature fees -> issue fees -> minimum charge floor

Rule order in the input list never matters. Rules are indexed by key after a
canonical sort, so two content-equal rule sets always give identical output.
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Tuple

from roofing_estimator.services.money_utils import (
    DEFAULT_RANGE_HIGH,
    DEFAULT_RANGE_LOW,
    round_half_up,
    three_tier_prices,
    whole_units,
)

logger = logging.getLogger(__name__)

DEFAULT_JOB_TYPE = 'repair'
DEFAULT_ROOF_SIZE_SQFT = 2000
MATERIAL_SHARE = 0.4
LABOR_SHARE = 0.6
MAX_STORY_RULE = 3

MULTIPLIER_STAGES = ('material', 'pitch', 'stories', 'urgency')

FEATURE_FLAGS = (
    ('has_skylights', 'feature_skylights', 'Skylight work'),
    ('has_chimneys', 'feature_chimneys', 'Chimney flashing'),
    ('has_solar_panels', 'feature_solar', 'Solar panel handling'),
)


class RuleKind(str, Enum):
    BASE = 'base'
    MULTIPLIER = 'multiplier'
    FLAT_FEE = 'flat_fee'
    MINIMUM = 'minimum'
    RANGE = 'range'


_KIND_BY_CATEGORY = {
    'job_type': RuleKind.BASE,
    'feature': RuleKind.FLAT_FEE,
    'issue': RuleKind.FLAT_FEE,
    'minimum': RuleKind.MINIMUM,
    'range': RuleKind.RANGE,
}


def _field(source, name, default=None):
    if isinstance(source, dict):
        value = source.get(name, default)
    else:
        value = getattr(source, name, default)
    return default if value is None else value


@dataclass(frozen=True)
class Rule:
    rule_key: str
    rule_category: str
    kind: RuleKind
    display_name: str = ''
    base_rate: float = 0.0
    unit: Optional[str] = None
    multiplier: float = 1.0
    flat_fee: float = 0.0
    min_charge: Optional[float] = None
    max_charge: Optional[float] = None
    is_active: bool = True

    @classmethod
    def from_source(cls, source):
        """Build a rule from a dict or a PricingRule row."""
        if isinstance(source, cls):
            return source
        category = _field(source, 'rule_category', '')
        kind = _field(source, 'kind') or _KIND_BY_CATEGORY.get(category, RuleKind.MULTIPLIER)
        min_charge = _field(source, 'min_charge')
        max_charge = _field(source, 'max_charge')
        return cls(
            rule_key=_field(source, 'rule_key', ''),
            rule_category=category,
            kind=RuleKind(kind),
            display_name=_field(source, 'display_name', ''),
            base_rate=float(_field(source, 'base_rate', 0.0)),
            unit=_field(source, 'unit'),
            multiplier=float(_field(source, 'multiplier', 1.0)),
            flat_fee=float(_field(source, 'flat_fee', 0.0)),
            min_charge=float(min_charge) if min_charge is not None else None,
            max_charge=float(max_charge) if max_charge is not None else None,
            is_active=bool(_field(source, 'is_active', True)),
        )

    def sort_key(self):
        return (
            self.rule_key,
            self.rule_category,
            self.kind.value,
            self.base_rate,
            self.unit or '',
            self.multiplier,
            self.flat_fee,
            -1 if self.min_charge is None else self.min_charge,
            -1 if self.max_charge is None else self.max_charge,
            self.display_name,
        )

    def to_dict(self):
        data = asdict(self)
        data['kind'] = self.kind.value
        return data


def _rule(rule_key, category, display_name, **operands):
    return Rule(
        rule_key=rule_key,
        rule_category=category,
        kind=_KIND_BY_CATEGORY.get(category, RuleKind.MULTIPLIER),
        display_name=display_name,
        **operands,
    )


# Built-in rule set used whenever the rule store is empty or unreachable.
DEFAULT_PRICING_RULES = (
    _rule('base_replacement', 'job_type', 'Full Replacement Base', base_rate=4.5, unit='sqft'),
    _rule('base_repair', 'job_type', 'Repair Base', base_rate=150.0, unit='flat'),
    _rule('base_inspection', 'job_type', 'Inspection Base', base_rate=250.0, unit='flat'),
    _rule('material_asphalt_shingle', 'material', 'Asphalt Shingle', multiplier=1.0),
    _rule('material_metal', 'material', 'Metal Roofing', multiplier=2.2),
    _rule('material_tile', 'material', 'Tile Roofing', multiplier=2.5),
    _rule('pitch_flat', 'pitch', 'Flat Pitch', multiplier=0.9),
    _rule('pitch_steep', 'pitch', 'Steep Pitch', multiplier=1.25),
    _rule('story_2', 'stories', '2 Stories', multiplier=1.15),
    _rule('story_3', 'stories', '3+ Stories', multiplier=1.35),
    _rule('urgency_emergency', 'urgency', 'Emergency', multiplier=1.5),
    _rule('urgency_asap', 'urgency', 'ASAP', multiplier=1.2),
    _rule('feature_skylights', 'feature', 'Skylights', flat_fee=350.0),
    _rule('feature_chimneys', 'feature', 'Chimneys', flat_fee=450.0),
    _rule('feature_solar', 'feature', 'Solar Panels', flat_fee=1500.0),
    _rule('issue_leaks', 'issue', 'Active Leaks', flat_fee=500.0),
    _rule('issue_missing_shingles', 'issue', 'Missing Shingles', flat_fee=150.0),
    _rule('issue_storm_damage', 'issue', 'Storm Damage', flat_fee=750.0),
    _rule('range_low', 'range', 'Low Estimate', multiplier=DEFAULT_RANGE_LOW),
    _rule('range_high', 'range', 'High Estimate', multiplier=DEFAULT_RANGE_HIGH),
    _rule('min_replacement', 'minimum', 'Minimum Replacement', min_charge=3500.0),
    _rule('min_repair', 'minimum', 'Minimum Repair', min_charge=350.0),
)


@dataclass(frozen=True)
class Adjustment:
    category: str
    rule_key: str
    label: str
    impact: float
    description: str = ''

    def to_dict(self):
        return {
            'category': self.category,
            'rule_key': self.rule_key,
            'label': self.label,
            'impact': round_half_up(self.impact, 2),
            'description': self.description,
        }


@dataclass(frozen=True)
class QuickEstimateResult:
    base_cost: int
    material_cost: int
    labor_cost: int
    price_low: int
    price_likely: int
    price_high: int
    adjustments: Tuple[Adjustment, ...] = field(default_factory=tuple)

    def to_dict(self):
        return {
            'base_cost': self.base_cost,
            'material_cost': self.material_cost,
            'labor_cost': self.labor_cost,
            'price_low': self.price_low,
            'price_likely': self.price_likely,
            'price_high': self.price_high,
            'adjustments': [adjustment.to_dict() for adjustment in self.adjustments],
        }


def _roof_size(intake):
    try:
        size = float(_field(intake, 'roof_size_sqft', 0) or 0)
    except (TypeError, ValueError):
        return float(DEFAULT_ROOF_SIZE_SQFT)
    if math.isnan(size) or math.isinf(size) or size == 0:
        return float(DEFAULT_ROOF_SIZE_SQFT)
    return size


def _stories(intake):
    try:
        return int(_field(intake, 'stories', 1) or 1)
    except (TypeError, ValueError):
        return 1


def _text(intake, name, default=None):
    value = _field(intake, name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _issues(intake):
    issues = _field(intake, 'issues', [])
    if not isinstance(issues, (list, tuple)):
        return []
    return list(dict.fromkeys(str(issue) for issue in issues if issue))


def _describe_multiplier(rule, stories=None):
    percent = abs(rule.multiplier * 100 - 100)
    if rule.rule_category == 'stories' and stories:
        return f"{percent:.0f}% for {stories} stories"
    if rule.rule_category == 'urgency' and rule.multiplier < 1:
        return f"{percent:.0f}% flexible scheduling discount"
    if rule.rule_category == 'urgency':
        return f"{percent:.0f}% urgency premium"
    sign = '+' if rule.multiplier > 1 else '-'
    return f"{sign}{percent:.0f}% for {rule.display_name.lower()}"


class QuickPricingEngine:
    """Rule interpreter for quick estimates. Safe to share between threads."""

    def __init__(self, rules):
        active = sorted(
            (Rule.from_source(rule) for rule in rules),
            key=Rule.sort_key,
        )
        self.rules = tuple(rule for rule in active if rule.is_active)
        self._by_key = {}
        for rule in self.rules:
            if rule.rule_key in self._by_key:
                logger.warning(f"Duplicate pricing rule key '{rule.rule_key}' ignored")
                continue
            self._by_key[rule.rule_key] = rule

    def get_rule(self, key):
        return self._by_key.get(key)

    def _base_rule(self, job_type):
        key = 'base_replacement' if job_type == 'full_replacement' else f'base_{job_type}'
        return self.get_rule(key) or self.get_rule('base_repair')

    def _multiplier_rules(self, intake):
        """Yield (stage, rule, stories) in the fixed application order."""
        stories = _stories(intake)
        lookups = {
            'material': _text(intake, 'roof_material') and f"material_{_text(intake, 'roof_material')}",
            'pitch': _text(intake, 'roof_pitch') and f"pitch_{_text(intake, 'roof_pitch')}",
            'stories': stories > 1 and f"story_{min(stories, MAX_STORY_RULE)}",
            'urgency': _text(intake, 'timeline_urgency') and f"urgency_{_text(intake, 'timeline_urgency')}",
        }
        for stage in MULTIPLIER_STAGES:
            key = lookups[stage]
            rule = self.get_rule(key) if key else None
            if rule is not None and rule.multiplier != 1:
                yield stage, rule, stories

    def calculate(self, intake) -> QuickEstimateResult:
        intake = intake or {}
        adjustments = []
        roof_size = _roof_size(intake)
        job_type = _text(intake, 'job_type', DEFAULT_JOB_TYPE)

        base_cost = 0.0
        base_rule = self._base_rule(job_type)
        if base_rule is not None:
            if base_rule.unit == 'sqft':
                base_cost = base_rule.base_rate * roof_size
            elif base_rule.unit == 'linear_ft':
                base_cost = base_rule.base_rate * math.sqrt(abs(roof_size)) * 4
            else:
                base_cost = base_rule.base_rate or base_rule.flat_fee
            if base_rule.max_charge is not None:
                base_cost = min(base_cost, base_rule.max_charge)
            adjustments.append(Adjustment(
                category='base',
                rule_key=base_rule.rule_key,
                label=base_rule.display_name,
                impact=base_cost,
                description=f"Base {job_type.replace('_', ' ')} rate",
            ))
        else:
            logger.warning(f"No base rule available for job type '{job_type}'")

        price = base_cost
        for stage, rule, stories in self._multiplier_rules(intake):
            impact = price * (rule.multiplier - 1)
            price *= rule.multiplier
            adjustments.append(Adjustment(
                category=stage,
                rule_key=rule.rule_key,
                label=rule.display_name,
                impact=impact,
                description=_describe_multiplier(rule, stories),
            ))

        for flag, key, description in FEATURE_FLAGS:
            rule = self.get_rule(key)
            if _field(intake, flag, False) and rule is not None and rule.flat_fee:
                price += rule.flat_fee
                adjustments.append(Adjustment('feature', rule.rule_key, rule.display_name,
                                              rule.flat_fee, description))

        for issue in _issues(intake):
            rule = self.get_rule(f'issue_{issue}')
            if rule is not None and rule.flat_fee:
                price += rule.flat_fee
                adjustments.append(Adjustment('issue', rule.rule_key, rule.display_name, rule.flat_fee,
                                              f"Repair for {rule.display_name.lower()}"))

        minimum_rule = self.get_rule('min_replacement' if job_type == 'full_replacement' else 'min_repair')
        if minimum_rule is not None and minimum_rule.min_charge is not None and price < minimum_rule.min_charge:
            adjustments.append(Adjustment(
                category='minimum',
                rule_key=minimum_rule.rule_key,
                label=minimum_rule.display_name,
                impact=minimum_rule.min_charge - price,
                description=f"Raised to minimum charge of {minimum_rule.min_charge:.0f}",
            ))
            price = minimum_rule.min_charge

        range_low = self.get_rule('range_low')
        range_high = self.get_rule('range_high')
        price_low, price_likely, price_high = three_tier_prices(
            price,
            range_low.multiplier if range_low else DEFAULT_RANGE_LOW,
            range_high.multiplier if range_high else DEFAULT_RANGE_HIGH,
        )

        return QuickEstimateResult(
            base_cost=whole_units(base_cost),
            material_cost=whole_units(price_likely * MATERIAL_SHARE),
            labor_cost=whole_units(price_likely * LABOR_SHARE),
            price_low=price_low,
            price_likely=price_likely,
            price_high=price_high,
            adjustments=tuple(a for a in adjustments if a.impact != 0),
        )


def calculate_quick_estimate(intake, rules=DEFAULT_PRICING_RULES) -> QuickEstimateResult:
    return QuickPricingEngine(rules).calculate(intake)
