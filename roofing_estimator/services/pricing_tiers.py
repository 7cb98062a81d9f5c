# roofing_estimator/services/pricing_tiers.py
"""Good / Better / Best packages built on top of a computed estimate."""

from collections import namedtuple

from roofing_estimator.errors import ValidationError
from roofing_estimator.services.money_utils import round_half_up, whole_units

TIER_LEVELS = ('good', 'better', 'best')
DEFAULT_TERM_MONTHS = 60
DEFAULT_APR = 0.0699

TierConfig = namedtuple(
    'TierConfig',
    'name description multiplier material_name manufacturer_warranty workmanship_years features',
)

_ASPHALT_TIERS = {
    'good': TierConfig('Essential', 'Quality protection at an affordable price', 1.0,
                       '3-Tab Shingles', '25-Year Limited', 5,
                       ('Standard 3-tab shingles', 'Synthetic underlayment', 'Basic ridge vent')),
    'better': TierConfig('Premium', 'Enhanced durability and curb appeal', 1.15,
                         'Architectural Shingles', '30-Year Limited Lifetime', 7,
                         ('Architectural dimensional shingles', 'Premium synthetic underlayment',
                          'Enhanced ridge ventilation', 'Upgraded drip edge')),
    'best': TierConfig('Elite', 'Maximum protection and premium aesthetics', 1.35,
                       'Designer Shingles', '50-Year or Lifetime', 10,
                       ('Designer high-definition shingles', 'Ice & water shield at all valleys',
                        'Premium ventilation system', 'Starter strip protection', 'Transferable warranty')),
}

_METAL_TIERS = {
    'good': TierConfig('Essential', 'Quality metal roofing at a great value', 1.0,
                       'Corrugated Metal', '25-Year Paint Warranty', 5,
                       ('Corrugated metal panels', 'Standard underlayment', 'Basic trim package')),
    'better': TierConfig('Premium', 'Standing seam for superior performance', 1.2,
                         'Standing Seam', '40-Year Warranty', 7,
                         ('Standing seam panels', 'High-temp synthetic underlayment',
                          'Premium trim & flashing', 'Color-matched accessories')),
    'best': TierConfig('Elite', 'Premium metal with maximum longevity', 1.4,
                       'Premium Standing Seam', 'Lifetime Limited', 10,
                       ('Kynar/PVDF coated panels', 'Premium underlayment system', 'Snow guards (if needed)',
                        'Custom fabricated trim', 'Transferable warranty')),
}

_DEFAULT_TIERS = {
    'good': TierConfig('Essential', 'Quality materials at an affordable price', 1.0,
                       'Standard Materials', '25-Year Limited', 5,
                       ('Standard roofing materials', 'Synthetic underlayment', 'Basic ventilation')),
    'better': TierConfig('Premium', 'Enhanced quality and durability', 1.15,
                         'Premium Materials', '30-Year Limited Lifetime', 7,
                         ('Premium roofing materials', 'High-performance underlayment',
                          'Enhanced ventilation system', 'Upgraded accessories')),
    'best': TierConfig('Elite', 'Top-tier materials and maximum protection', 1.35,
                       'Elite Materials', '50-Year or Lifetime', 10,
                       ('Premium designer materials', 'Ice & water shield protection',
                        'Premium ventilation package', 'Transferable warranty')),
}

_TIERS_BY_MATERIAL = {
    'asphalt_shingle': _ASPHALT_TIERS,
    'metal': _METAL_TIERS,
}


def monthly_payment(price, term_months=DEFAULT_TERM_MONTHS, apr=DEFAULT_APR):
    """Fixed monthly payment for an amortized loan, rounded to whole units."""
    if term_months <= 0:
        raise ValidationError('term_months must be positive', details={'term_months': term_months})
    if apr == 0:
        return round_half_up(price / term_months)

    monthly_rate = apr / 12
    growth = (1 + monthly_rate) ** term_months
    return round_half_up(price * monthly_rate * growth / (growth - 1))


def build_pricing_tiers(price_low, price_likely, price_high, roof_material=None, recommended='better'):
    """
    Scale an estimate into three packages. The computed estimate is the
    "good" package; the others apply their material-specific multiplier.
    """
    if recommended not in TIER_LEVELS:
        raise ValidationError(f"Unknown tier '{recommended}'", details={'allowed': list(TIER_LEVELS)})

    configs = _TIERS_BY_MATERIAL.get(roof_material, _DEFAULT_TIERS)
    tiers = []
    for level in TIER_LEVELS:
        config = configs[level]
        likely = whole_units(price_likely * config.multiplier)
        tiers.append({
            'level': level,
            'name': config.name,
            'description': config.description,
            'price_multiplier': config.multiplier,
            'price_low': whole_units(price_low * config.multiplier),
            'price_likely': likely,
            'price_high': whole_units(price_high * config.multiplier),
            'monthly_payment': monthly_payment(likely),
            'material': {
                'name': config.material_name,
                'warranty': config.manufacturer_warranty,
            },
            'features': list(config.features) + [f'{config.workmanship_years}-year workmanship warranty'],
            'warranty': {
                'workmanship': f'{config.workmanship_years} Years',
                'manufacturer': config.manufacturer_warranty,
            },
            'is_recommended': level == recommended,
        })
    return {'tiers': tiers, 'selected_tier': recommended}
