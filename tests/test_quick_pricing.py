import pytest

from roofing_estimator.services.quick_pricing import (
    DEFAULT_PRICING_RULES,
    QuickPricingEngine,
    Rule,
    RuleKind,
    calculate_quick_estimate,
)


def _categories(result):
    return [adjustment.category for adjustment in result.adjustments]


def test_empty_intake_is_a_repair_raised_to_minimum():
    result = calculate_quick_estimate({})

    assert result.base_cost == 150
    assert (result.price_low, result.price_likely, result.price_high) == (298, 350, 438)
    assert _categories(result) == ['base', 'minimum']
    assert result.adjustments[-1].impact == pytest.approx(200)


def test_replacement_priced_per_square_foot():
    result = calculate_quick_estimate({
        'job_type': 'full_replacement',
        'roof_size_sqft': 2000,
        'roof_material': 'asphalt_shingle',
    })

    assert result.base_cost == 9000
    assert (result.price_low, result.price_likely, result.price_high) == (7650, 9000, 11250)
    assert result.material_cost == 3600
    assert result.labor_cost == 5400
    # A 1.0 material multiplier changes nothing and is not reported
    assert _categories(result) == ['base']


def test_multipliers_compound_in_fixed_order():
    result = calculate_quick_estimate({
        'job_type': 'full_replacement',
        'roof_size_sqft': 2000,
        'roof_material': 'metal',
        'roof_pitch': 'steep',
        'stories': 2,
        'timeline_urgency': 'emergency',
    })

    assert _categories(result) == ['base', 'material', 'pitch', 'stories', 'urgency']
    impacts = [adjustment.impact for adjustment in result.adjustments]
    assert impacts == pytest.approx([9000, 10800, 4950, 3712.5, 14231.25])
    assert result.price_likely == 42694
    assert result.price_low == 36290
    assert result.price_high == 53368


def test_multiplier_order_does_not_depend_on_rule_order():
    intake = {'job_type': 'full_replacement', 'roof_size_sqft': 1800, 'roof_material': 'tile',
              'roof_pitch': 'steep', 'stories': 3, 'timeline_urgency': 'asap'}
    forward = calculate_quick_estimate(intake, DEFAULT_PRICING_RULES)
    backward = calculate_quick_estimate(intake, tuple(reversed(DEFAULT_PRICING_RULES)))
    assert forward == backward


def test_stories_above_three_use_the_three_story_rule():
    result = calculate_quick_estimate({'job_type': 'full_replacement', 'stories': 5})
    stories = [a for a in result.adjustments if a.category == 'stories']
    assert stories[0].rule_key == 'story_3'
    assert '5 stories' in stories[0].description


def test_single_story_adds_no_adjustment():
    result = calculate_quick_estimate({'job_type': 'full_replacement', 'stories': 1})
    assert 'stories' not in _categories(result)


def test_feature_fees_are_added_after_multipliers():
    result = calculate_quick_estimate({
        'job_type': 'repair',
        'has_skylights': True,
        'has_chimneys': True,
        'timeline_urgency': 'asap',
    })

    # 150 * 1.2 + 350 + 450
    assert result.price_likely == 980
    assert _categories(result) == ['base', 'urgency', 'feature', 'feature']


def test_duplicate_issues_are_charged_once():
    result = calculate_quick_estimate({'issues': ['leaks', 'storm_damage', 'leaks', 'unknown_issue']})

    assert result.price_likely == 150 + 500 + 750
    assert [a.rule_key for a in result.adjustments if a.category == 'issue'] == ['issue_leaks', 'issue_storm_damage']


def test_missing_or_zero_size_uses_default():
    with_default = calculate_quick_estimate({'job_type': 'full_replacement', 'roof_size_sqft': 0})
    assert with_default.base_cost == 9000


def test_price_range_is_ordered():
    intakes = [
        {},
        {'job_type': 'full_replacement', 'roof_size_sqft': 3100, 'roof_material': 'tile'},
        {'job_type': 'inspection'},
        {'issues': ['missing_shingles'], 'timeline_urgency': 'emergency'},
    ]
    for intake in intakes:
        result = calculate_quick_estimate(intake)
        assert result.price_low < result.price_likely < result.price_high


def test_metal_costs_more_than_twice_asphalt():
    intake = {'job_type': 'full_replacement', 'roof_size_sqft': 2000}
    asphalt = calculate_quick_estimate(dict(intake, roof_material='asphalt_shingle'))
    metal = calculate_quick_estimate(dict(intake, roof_material='metal'))

    assert metal.price_likely > 2 * asphalt.price_likely


def test_skylight_and_chimney_fees_add_exactly():
    intake = {'job_type': 'full_replacement', 'roof_size_sqft': 2000, 'roof_pitch': 'steep'}
    plain = calculate_quick_estimate(intake)
    featured = calculate_quick_estimate(dict(intake, has_skylights=True, has_chimneys=True))

    assert featured.price_likely - plain.price_likely == 350 + 450


def test_no_rules_gives_zero_estimate():
    result = calculate_quick_estimate({'job_type': 'full_replacement'}, rules=())
    assert (result.price_low, result.price_likely, result.price_high) == (0, 0, 0)
    assert result.adjustments == ()


def test_rules_from_plain_dicts_and_max_charge():
    rules = [
        {'rule_key': 'base_replacement', 'rule_category': 'job_type', 'base_rate': 5, 'unit': 'sqft',
         'max_charge': 8000, 'display_name': 'Capped Base'},
        {'rule_key': 'range_low', 'rule_category': 'range', 'multiplier': 0.9},
        {'rule_key': 'range_high', 'rule_category': 'range', 'multiplier': 1.1},
    ]
    result = calculate_quick_estimate({'job_type': 'full_replacement', 'roof_size_sqft': 2000}, rules)

    assert result.base_cost == 8000
    assert (result.price_low, result.price_likely, result.price_high) == (7200, 8000, 8800)


def test_inactive_rules_are_ignored():
    rules = list(DEFAULT_PRICING_RULES) + [
        Rule(rule_key='issue_hail', rule_category='issue', kind=RuleKind.FLAT_FEE, flat_fee=999, is_active=False),
    ]
    engine = QuickPricingEngine(rules)
    assert engine.get_rule('issue_hail') is None
    assert engine.calculate({'issues': ['hail']}).price_likely == 350


def test_minimum_only_applies_when_rule_exists():
    rules = [rule for rule in DEFAULT_PRICING_RULES if rule.rule_category != 'minimum']
    result = calculate_quick_estimate({}, rules)
    assert result.price_likely == 150
    assert 'minimum' not in _categories(result)


def test_result_serializes_adjustments():
    data = calculate_quick_estimate({'has_solar_panels': True}).to_dict()
    assert data['price_likely'] == 1650
    assert data['adjustments'][1] == {
        'category': 'feature',
        'rule_key': 'feature_solar',
        'label': 'Solar Panels',
        'impact': 1500.0,
        'description': 'Solar panel handling',
    }
