import pytest

from roofing_estimator.errors import ValidationError
from roofing_estimator.services.money_utils import round_half_up, three_tier_prices, to_cents, whole_units
from roofing_estimator.services.pricing_tiers import build_pricing_tiers, monthly_payment


class TestRounding:
    @pytest.mark.parametrize('value, expected', [(0.5, 1), (1.5, 2), (2.5, 3), (297.5, 298), (-0.4, 0)])
    def test_halves_round_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_cents(self):
        assert to_cents(10.005) == 10.01
        assert to_cents(None) is None

    def test_whole_units_absorbs_float_noise(self):
        assert whole_units(42693.749999999993) == 42694
        assert whole_units(42693.74) == 42694
        assert whole_units(42693.49) == 42693

    def test_spread_is_taken_from_rounded_likely(self):
        assert three_tier_prices(1000.4) == (850, 1000, 1250)
        assert three_tier_prices(350) == (298, 350, 438)
        assert three_tier_prices(0) == (0, 0, 0)


class TestTiers:
    def test_three_tiers_with_recommended_better(self):
        result = build_pricing_tiers(8500, 10000, 12500, 'asphalt_shingle')

        assert [tier['level'] for tier in result['tiers']] == ['good', 'better', 'best']
        assert result['selected_tier'] == 'better'
        good, better, best = result['tiers']
        assert good['price_likely'] == 10000
        assert better['price_likely'] == 11500
        assert best['price_likely'] == 13500
        assert better['is_recommended'] and not good['is_recommended']
        assert better['material']['name'] == 'Architectural Shingles'

    def test_metal_uses_its_own_multipliers(self):
        result = build_pricing_tiers(17000, 20000, 25000, 'metal')
        assert [tier['price_likely'] for tier in result['tiers']] == [20000, 24000, 28000]

    def test_unknown_material_uses_default_packages(self):
        result = build_pricing_tiers(850, 1000, 1250, 'slate')
        assert result['tiers'][0]['material']['name'] == 'Standard Materials'

    def test_unknown_recommended_tier(self):
        with pytest.raises(ValidationError):
            build_pricing_tiers(850, 1000, 1250, recommended='platinum')

    def test_monthly_payment(self):
        assert monthly_payment(6000, term_months=60, apr=0) == 100
        # 10,000 over 60 months at 6.99% APR
        assert monthly_payment(10000) == 198

    def test_monthly_payment_needs_a_term(self):
        with pytest.raises(ValidationError):
            monthly_payment(1000, term_months=0)
