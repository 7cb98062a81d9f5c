import pytest

from roofing_estimator.errors import FormulaError
from roofing_estimator.services.formula import (
    evaluate_formula,
    quantity_with_waste,
    referenced_variables,
    suggest_formula,
    validate_formula,
    variable_map,
)


@pytest.mark.parametrize('formula, expected', [
    ('SQ', 25),
    ('SQ * 1.10', 27.5),
    ('EAVE + RAKE', 180),
    ('R + HIP', 50),
    ('EAVE * 3 / 100', 3),
    ('(SQ + 5) * 2', 60),
    ('-SQ + 30', 5),
    ('sq', 25),
    ('PIPE_COUNT', 4),
    ('1', 1),
])
def test_evaluates_against_roof_variables(sample_variables, formula, expected):
    assert evaluate_formula(formula, sample_variables) == pytest.approx(expected)


def test_slope_variables_use_facet_prefix(sample_variables):
    assert evaluate_formula('F1SQ + F2EAVE', sample_variables) == pytest.approx(62.5)
    assert variable_map(sample_variables)['F2PITCH'] == 5.0


def test_accepts_flat_mapping():
    assert evaluate_formula('SQ * 2', {'SQ': 10}) == 20


@pytest.mark.parametrize('formula', ['', '   ', None])
def test_empty_formula_is_zero(sample_variables, formula):
    assert evaluate_formula(formula, sample_variables) == 0.0


@pytest.mark.parametrize('formula', [
    'UNKNOWN * 2',
    'SQ / 0',
    'SQ *',
    'SQ ** 2',
    '__import__("os")',
    'SQ if EAVE else RAKE',
    "'text'",
])
def test_rejected_formulas(sample_variables, formula):
    with pytest.raises(FormulaError):
        evaluate_formula(formula, sample_variables)


def test_unknown_variable_names_the_variable(sample_variables):
    with pytest.raises(FormulaError) as exc_info:
        evaluate_formula('SQ + WIDGETS', sample_variables)
    assert exc_info.value.details['variable'] == 'WIDGETS'


def test_validate_without_roof_data():
    assert validate_formula('SQ * 1.1 + F3RAKE') == (True, None, ['SQ', 'F3RAKE'])

    is_valid, error, _ = validate_formula('SQ * BOGUS')
    assert not is_valid
    assert 'BOGUS' in error

    is_valid, error, names = validate_formula('SQ +')
    assert not is_valid
    assert names == []


def test_referenced_variables_are_unique_and_ordered():
    assert referenced_variables('eave + rake + EAVE') == ['EAVE', 'RAKE']


def test_waste_is_applied_and_clamped(sample_variables):
    assert quantity_with_waste('SQ', sample_variables, 1.1) == pytest.approx(27.5)
    assert quantity_with_waste('SQ - 100', sample_variables, 1.1) == 0.0


def test_suggested_formula_by_category():
    assert suggest_formula('drip_edge') == 'EAVE + RAKE'
    assert suggest_formula('Valley') == 'VAL'
    assert suggest_formula('steep_charge') == 'STEEP_CHARGE_SQ'
    assert suggest_formula('something_new') == 'SQ'
