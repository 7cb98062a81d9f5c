# roofing_estimator/models/__init__.py

from .base import db

# Import order matters: referenced tables must be registered before the
# models that hold foreign keys to them.

# 1. Leads and measurements
from .lead import Lead, LeadIntake
from .sketch import RoofSketch, RoofSlope

# 2. Pricing configuration and catalog
from .pricing_rule import PricingRule
from .line_item import LineItem
from .macro import EstimateMacro, MacroLineItem
from .geographic_pricing import GeographicPricing

# 3. Estimate records
from .estimate import QuickEstimate
from .detailed_estimate import DetailedEstimate, EstimateLineItem, PriceAdjustment

__all__ = [
    'db',
    'Lead',
    'LeadIntake',
    'RoofSketch',
    'RoofSlope',
    'PricingRule',
    'LineItem',
    'EstimateMacro',
    'MacroLineItem',
    'GeographicPricing',
    'QuickEstimate',
    'DetailedEstimate',
    'EstimateLineItem',
    'PriceAdjustment',
]
