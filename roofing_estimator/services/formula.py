# roofing_estimator/services/formula.py
"""
Quantity formula evaluation.

Line items describe their quantity as a small arithmetic expression over roof
variables, for example ``SQ * 1.1`` or ``EAVE + RAKE``. Formulas come from
stored catalog data, so they are parsed with ``ast`` and only a whitelist of
arithmetic nodes is ever walked. Nothing is compiled or executed.
"""

import ast
import logging
import operator
import re

from roofing_estimator.errors import FormulaError

logger = logging.getLogger(__name__)

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPERATORS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_SLOPE_FIELDS = ('SQ', 'SF', 'PITCH', 'EAVE', 'RIDGE', 'VALLEY', 'HIP', 'RAKE')

BASE_VARIABLES = (
    'SQ', 'SF', 'P', 'EAVE', 'R', 'VAL', 'HIP', 'RAKE',
    'SKYLIGHT_COUNT', 'CHIMNEY_COUNT', 'PIPE_COUNT', 'VENT_COUNT',
    'GUTTER_LF', 'DS_COUNT', 'STEEP_SQ', 'STEEP_CHARGE_SQ',
)

_SLOPE_VARIABLE = re.compile(r'^F\d+(%s)$' % '|'.join(_SLOPE_FIELDS))

# Default quantity formula per line item category
SUGGESTED_FORMULAS = {
    'tear_off': 'SQ',
    'underlayment': 'SQ',
    'shingles': 'SQ',
    'metal_roofing': 'SQ',
    'tile': 'SQ',
    'ice_water': 'EAVE * 3 / 100',
    'drip_edge': 'EAVE + RAKE',
    'flashing': 'EAVE + RAKE',
    'starter': 'EAVE + RAKE',
    'ridge_cap': 'R + HIP',
    'hip_ridge': 'R + HIP',
    'valley': 'VAL',
    'ventilation': 'R',
    'pipe_boots': 'PIPE_COUNT',
    'vents': 'VENT_COUNT',
    'skylights': 'SKYLIGHT_COUNT',
    'chimney': 'CHIMNEY_COUNT',
    'gutters': 'GUTTER_LF',
    'downspouts': 'DS_COUNT',
    'steep_charge': 'STEEP_CHARGE_SQ',
    'disposal': 'SQ',
    'permit': '1',
    'labor': 'SQ',
}


def variable_map(variables):
    """
    Flatten RoofVariables into the name -> value mapping formulas see.

    Per-slope values are exposed with the facet prefix, e.g. ``F1SQ`` or
    ``F2PITCH``.
    """
    if isinstance(variables, dict):
        flat = {key.upper(): value for key, value in variables.items() if key != 'slopes'}
        slopes = variables.get('slopes') or {}
    else:
        snapshot = variables.to_dict()
        slopes = snapshot.pop('slopes')
        flat = snapshot

    for name, values in slopes.items():
        for key in _SLOPE_FIELDS:
            if key in values:
                flat[f'{name.upper()}{key}'] = values[key]
    return flat


def _parse(formula):
    try:
        tree = ast.parse(formula.strip(), mode='eval')
    except SyntaxError as e:
        raise FormulaError(f"Invalid formula '{formula}': {e.msg}", details={'formula': formula})
    return tree.body


def _walk(node, formula, values, names):
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise FormulaError(f"Unsupported literal in formula '{formula}'", details={'formula': formula})
        return float(node.value)

    if isinstance(node, ast.Name):
        name = node.id.upper()
        names.append(name)
        if values is None:
            return 0.0
        if name not in values:
            raise FormulaError(f"Unknown variable: {name}", details={'formula': formula, 'variable': name})
        return float(values[name])

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _walk(node.left, formula, values, names)
        right = _walk(node.right, formula, values, names)
        if isinstance(node.op, ast.Div) and right == 0:
            if values is None:
                return 0.0
            raise FormulaError(f"Division by zero in formula '{formula}'", details={'formula': formula})
        return _BINARY_OPERATORS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_walk(node.operand, formula, values, names))

    raise FormulaError(
        f"Unsupported expression in formula '{formula}'",
        details={'formula': formula, 'node': type(node).__name__},
    )


def evaluate_formula(formula, variables):
    """Evaluate ``formula`` against RoofVariables (or an already-flat mapping)."""
    if formula is None or not str(formula).strip():
        return 0.0
    values = variable_map(variables)
    return _walk(_parse(str(formula)), formula, values, [])


def referenced_variables(formula):
    """Upper-cased variable names a formula refers to, in order of appearance."""
    if formula is None or not str(formula).strip():
        return []
    names = []
    _walk(_parse(str(formula)), formula, None, names)
    return list(dict.fromkeys(names))


def _is_known_variable(name):
    return name in BASE_VARIABLES or bool(_SLOPE_VARIABLE.match(name))


def validate_formula(formula):
    """
    Check a formula without roof data.

    Returns ``(is_valid, error_message, variables)``.
    """
    try:
        names = referenced_variables(formula)
    except FormulaError as e:
        return False, e.message, []

    unknown = [name for name in names if not _is_known_variable(name)]
    if unknown:
        return False, f"Unknown variable: {unknown[0]}", names
    return True, None, names


def quantity_with_waste(formula, variables, waste_factor=1.0):
    """Evaluate a formula and apply a waste factor. Never negative."""
    quantity = evaluate_formula(formula, variables)
    return max(0.0, quantity * waste_factor)


def suggest_formula(category):
    return SUGGESTED_FORMULAS.get((category or '').lower(), 'SQ')
