import math

import pytest

from roofing_estimator.errors import ValidationError
from roofing_estimator.services.formula import evaluate_formula
from roofing_estimator.services.geometry import (
    RoofVariables,
    classify_pitch,
    pitch_multiplier,
    resolve,
    resolve_from_dimensions,
    resolve_from_intake,
    resolve_from_sketch,
    validate_variables,
)


class TestPitch:
    def test_flat_roof_has_no_area_increase(self):
        assert pitch_multiplier(0) == 1.0

    def test_twelve_twelve_is_root_two(self):
        assert pitch_multiplier(12) == pytest.approx(math.sqrt(2))

    @pytest.mark.parametrize('pitch', [-1, 24.5, 30])
    def test_out_of_range_pitch_is_rejected(self, pitch):
        with pytest.raises(ValidationError):
            pitch_multiplier(pitch)

    def test_max_pitch_is_accepted(self):
        assert pitch_multiplier(24) == pytest.approx(math.sqrt(5))

    @pytest.mark.parametrize('pitch, steep, multiplier', [
        (6, False, 1.0),
        (7, True, 1.05),
        (12, True, 1.30),
        (20, True, 1.5),
    ])
    def test_steep_classification(self, pitch, steep, multiplier):
        result = classify_pitch(pitch)
        assert result.is_steep is steep
        assert result.steep_multiplier == pytest.approx(multiplier)


class TestDimensions:
    def test_flat_gable_footprint(self):
        roof = resolve_from_dimensions(40, 30)

        assert roof.square_feet == pytest.approx(1200)
        assert roof.squares == pytest.approx(12)
        assert roof.eave == 80
        assert roof.ridge == 40
        assert roof.rake == 60
        assert roof.valley == 0
        assert roof.hip == 0
        assert roof.perimeter == 140
        assert roof.gutter_lf == 80
        assert roof.pipe_count == 2
        assert roof.downspout_count == 2

    def test_area_is_not_rounded(self):
        roof = resolve_from_dimensions(40, 30, pitch=12)
        assert roof.square_feet == pytest.approx(1200 * math.sqrt(2))
        assert roof.squares == pytest.approx(12 * math.sqrt(2))

    def test_split_into_two_equal_facets(self):
        roof = resolve_from_dimensions(40, 30, pitch=8)

        assert [slope.name for slope in roof.slopes] == ['F1', 'F2']
        assert roof.slope('F1').squares == pytest.approx(roof.squares / 2)
        assert sum(slope.eave for slope in roof.slopes) == pytest.approx(roof.eave)
        assert roof.steep_squares == pytest.approx(roof.squares)

    def test_negative_dimension_is_rejected(self):
        with pytest.raises(ValidationError):
            resolve_from_dimensions(-10, 30)

    def test_explicit_counts_override_defaults(self):
        roof = resolve_from_dimensions(40, 30, pipe_boots=5, downspouts=6, gutter_lf=120)
        assert roof.pipe_count == 5
        assert roof.downspout_count == 6
        assert roof.gutter_lf == 120


class TestSketch:
    def test_totals_are_summed_from_slopes(self):
        roof = resolve_from_sketch({
            'skylight_count': 2,
            'slopes': [
                {'slope_number': 1, 'sqft': 1000, 'pitch': 6, 'eave_lf': 40, 'ridge_lf': 40, 'rake_lf': 25},
                {'slope_number': 2, 'sqft': 800, 'pitch': 9, 'eave_lf': 40, 'valley_lf': 12, 'hip_lf': 8},
            ],
        })

        assert roof.square_feet == 1800
        assert roof.squares == pytest.approx(18)
        assert roof.eave == 80
        assert roof.ridge == 40
        assert roof.valley == 12
        assert roof.hip == 8
        assert roof.rake == 25
        assert roof.skylight_count == 2
        assert roof.steep_squares == pytest.approx(8)
        # 9/12 facet: 1 + 0.05 * 3
        assert roof.steep_charge_squares == pytest.approx(8 * 1.15)
        assert evaluate_formula('STEEP_CHARGE_SQ', roof) == pytest.approx(9.2)

    def test_plan_area_is_converted_to_surface_area(self):
        roof = resolve_from_sketch({'slopes': [{'name': 'Front', 'plan_sqft': 1000, 'pitch': 12}]})
        assert roof.slope('Front').square_feet == pytest.approx(1000 * math.sqrt(2))

    def test_totals_only_sketch(self):
        roof = resolve_from_sketch({
            'total_sqft': 2400,
            'total_eave_lf': 120,
            'total_ridge_lf': 45,
            'total_rake_lf': 60,
        })
        assert roof.squares == pytest.approx(24)
        assert roof.perimeter == 180
        assert roof.slopes == ()
        assert roof.pipe_count == 2

    def test_invalid_slope_pitch_is_rejected(self):
        with pytest.raises(ValidationError):
            resolve_from_sketch({'slopes': [{'sqft': 1000, 'pitch': 26}]})


class TestIntake:
    def test_defaults_for_empty_intake(self):
        roof = resolve_from_intake({})

        assert roof.square_feet == pytest.approx(2000 * math.sqrt(1 + (5 / 12) ** 2))
        assert roof.pipe_count == 3
        assert roof.vent_count == 4
        assert roof.downspout_count == 3

    def test_features_become_counts(self):
        roof = resolve_from_intake({'roof_size_sqft': 1600, 'has_skylights': True, 'has_chimneys': True,
                                    'roof_pitch': 'steep', 'stories': 2})
        assert roof.skylight_count == 1
        assert roof.chimney_count == 1
        assert roof.pipe_count == 4
        assert roof.steep_squares == pytest.approx(roof.squares)


class TestResolveAndValidate:
    def test_dispatch(self):
        assert resolve(None) == RoofVariables()
        assert resolve({'length_ft': 40, 'width_ft': 30}).squares == pytest.approx(12)
        assert resolve({'total_sqft': 1500}).squares == pytest.approx(15)

    def test_variables_round_trip_through_snapshot(self, sample_variables):
        assert RoofVariables.from_dict(sample_variables.to_dict()) == sample_variables

    def test_small_roof_warning(self):
        result = validate_variables(resolve_from_dimensions(10, 20))
        assert result['valid'] is True
        assert 'Very small roof (<5 squares)' in result['warnings']

    def test_strict_mode_raises_on_errors(self):
        with pytest.raises(ValidationError):
            validate_variables(RoofVariables(squares=-1), strict=True)
