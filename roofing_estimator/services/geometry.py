# roofing_estimator/services/geometry.py
"""
Roof geometry resolver.

Turns raw roof measurements (simple length/width/pitch dimensions, a
persisted roof sketch with per-slope records, or the rough answers from the
quick intake form) into a single immutable RoofVariables record. Quantity
formulas and both pricing engines read from that record only.

All functions here are pure: no database access, no logging side effects
beyond debug output.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Tuple

from roofing_estimator.errors import ValidationError

logger = logging.getLogger(__name__)

SQFT_PER_SQUARE = 100
MAX_PITCH = 24
STEEP_PITCH_THRESHOLD = 7

# Steep-charge multiplier grows by this much per inch of rise above 6/12
STEEP_CHARGE_STEP = 0.05
STEEP_CHARGE_CAP = 1.5

DEFAULT_PIPE_BOOTS = 2
DEFAULT_DOWNSPOUTS = 2
DEFAULT_INTAKE_SQFT = 2000

# Quick intake only asks for a pitch category, not a rise value
PITCH_CATEGORY_RISE = {
    'flat': 1,
    'low': 3,
    'medium': 5,
    'steep': 8,
    'very_steep': 12,
    'unknown': 5,
}


@dataclass(frozen=True)
class PitchClassification:
    pitch: float
    area_multiplier: float
    is_steep: bool
    steep_multiplier: float


@dataclass(frozen=True)
class SlopeVariables:
    """Measurements for one roof facet (F1, F2, ...)."""

    name: str
    squares: float = 0.0
    square_feet: float = 0.0
    pitch: float = 0.0
    eave: float = 0.0
    ridge: float = 0.0
    valley: float = 0.0
    hip: float = 0.0
    rake: float = 0.0

    @property
    def is_steep(self) -> bool:
        return self.pitch >= STEEP_PITCH_THRESHOLD

    @property
    def steep_multiplier(self) -> float:
        return classify_pitch(self.pitch).steep_multiplier

    def to_dict(self):
        return {
            'SQ': self.squares,
            'SF': self.square_feet,
            'PITCH': self.pitch,
            'EAVE': self.eave,
            'RIDGE': self.ridge,
            'VALLEY': self.valley,
            'HIP': self.hip,
            'RAKE': self.rake,
        }


@dataclass(frozen=True)
class RoofVariables:
    """Canonical derived geometry for one roof. Lengths are linear feet."""

    squares: float = 0.0
    square_feet: float = 0.0
    perimeter: float = 0.0
    eave: float = 0.0
    ridge: float = 0.0
    valley: float = 0.0
    hip: float = 0.0
    rake: float = 0.0
    skylight_count: int = 0
    chimney_count: int = 0
    pipe_count: int = 0
    vent_count: int = 0
    gutter_lf: float = 0.0
    downspout_count: int = 0
    slopes: Tuple[SlopeVariables, ...] = field(default_factory=tuple)

    @property
    def steep_squares(self) -> float:
        return sum(slope.squares for slope in self.slopes if slope.is_steep)

    @property
    def steep_charge_squares(self) -> float:
        """Steep squares weighted by each facet's steep-charge multiplier."""
        return sum(slope.squares * slope.steep_multiplier for slope in self.slopes if slope.is_steep)

    def slope(self, name):
        for slope in self.slopes:
            if slope.name == name:
                return slope
        return None

    def to_dict(self):
        """Serialize using the upper-case variable names formulas refer to."""
        return {
            'SQ': self.squares,
            'SF': self.square_feet,
            'P': self.perimeter,
            'EAVE': self.eave,
            'R': self.ridge,
            'VAL': self.valley,
            'HIP': self.hip,
            'RAKE': self.rake,
            'SKYLIGHT_COUNT': self.skylight_count,
            'CHIMNEY_COUNT': self.chimney_count,
            'PIPE_COUNT': self.pipe_count,
            'VENT_COUNT': self.vent_count,
            'GUTTER_LF': self.gutter_lf,
            'DS_COUNT': self.downspout_count,
            'STEEP_SQ': self.steep_squares,
            'STEEP_CHARGE_SQ': self.steep_charge_squares,
            'slopes': {slope.name: slope.to_dict() for slope in self.slopes},
        }

    @classmethod
    def from_dict(cls, data):
        """Rebuild variables from the snapshot stored on an estimate."""
        data = data or {}
        slopes = tuple(
            SlopeVariables(
                name=name,
                squares=values.get('SQ', 0.0),
                square_feet=values.get('SF', 0.0),
                pitch=values.get('PITCH', 0.0),
                eave=values.get('EAVE', 0.0),
                ridge=values.get('RIDGE', 0.0),
                valley=values.get('VALLEY', 0.0),
                hip=values.get('HIP', 0.0),
                rake=values.get('RAKE', 0.0),
            )
            for name, values in (data.get('slopes') or {}).items()
        )
        return cls(
            squares=data.get('SQ', 0.0),
            square_feet=data.get('SF', 0.0),
            perimeter=data.get('P', 0.0),
            eave=data.get('EAVE', 0.0),
            ridge=data.get('R', 0.0),
            valley=data.get('VAL', 0.0),
            hip=data.get('HIP', 0.0),
            rake=data.get('RAKE', 0.0),
            skylight_count=int(data.get('SKYLIGHT_COUNT', 0)),
            chimney_count=int(data.get('CHIMNEY_COUNT', 0)),
            pipe_count=int(data.get('PIPE_COUNT', 0)),
            vent_count=int(data.get('VENT_COUNT', 0)),
            gutter_lf=data.get('GUTTER_LF', 0.0),
            downspout_count=int(data.get('DS_COUNT', 0)),
            slopes=slopes,
        )


def _measurement(value, name, default=0.0) -> float:
    """Return a non-negative float, substituting the default for missing values."""
    if value is None or value == '':
        return float(default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", details={'field': name, 'value': value})
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be a finite number", details={'field': name})
    if number < 0:
        raise ValidationError(f"{name} cannot be negative", details={'field': name, 'value': number})
    return number


def _count(value, name, default=0) -> int:
    return int(round(_measurement(value, name, default)))


def validate_pitch(pitch) -> float:
    """Pitch is rise per 12 inches of run. Values above 24/12 are rejected."""
    value = _measurement(pitch, 'pitch')
    if value > MAX_PITCH:
        raise ValidationError(
            f"Pitch {value}/12 exceeds the maximum supported pitch of {MAX_PITCH}/12",
            details={'field': 'pitch', 'value': value},
        )
    return value


def pitch_multiplier(pitch) -> float:
    """Ratio of true sloped surface area to flat plan area."""
    value = validate_pitch(pitch)
    return math.sqrt(1 + (value / 12) ** 2)


def classify_pitch(pitch) -> PitchClassification:
    value = validate_pitch(pitch)
    is_steep = value >= STEEP_PITCH_THRESHOLD
    steep_multiplier = 1.0
    if is_steep:
        steep_multiplier = min(
            1 + STEEP_CHARGE_STEP * (value - (STEEP_PITCH_THRESHOLD - 1)),
            STEEP_CHARGE_CAP,
        )
    return PitchClassification(
        pitch=value,
        area_multiplier=math.sqrt(1 + (value / 12) ** 2),
        is_steep=is_steep,
        steep_multiplier=steep_multiplier,
    )


def resolve_from_dimensions(length_ft, width_ft, pitch=0, stories=1, skylights=0,
                            chimneys=0, pipe_boots=None, vents=0, gutter_lf=None,
                            downspouts=None) -> RoofVariables:
    """
    Approximate a simple gable roof from its footprint.

    Two eaves run the length of the house, one ridge sits on top and two
    rakes close the gable ends. There are no valleys or hips. The result is
    split evenly into two facets F1 and F2.
    """
    length = _measurement(length_ft, 'length_ft')
    width = _measurement(width_ft, 'width_ft')
    multiplier = pitch_multiplier(pitch)
    rise = validate_pitch(pitch)
    _count(stories, 'stories', 1)

    square_feet = length * width * multiplier
    squares = square_feet / SQFT_PER_SQUARE
    eave = length * 2
    ridge = length
    rake = width * 2

    facet = dict(
        squares=squares / 2,
        square_feet=square_feet / 2,
        pitch=rise,
        eave=eave / 2,
        ridge=ridge / 2,
        rake=rake / 2,
    )

    return RoofVariables(
        squares=squares,
        square_feet=square_feet,
        perimeter=2 * (length + width),
        eave=eave,
        ridge=ridge,
        valley=0.0,
        hip=0.0,
        rake=rake,
        skylight_count=_count(skylights, 'skylights'),
        chimney_count=_count(chimneys, 'chimneys'),
        pipe_count=_count(pipe_boots, 'pipe_boots', DEFAULT_PIPE_BOOTS),
        vent_count=_count(vents, 'vents'),
        gutter_lf=_measurement(gutter_lf, 'gutter_lf', eave),
        downspout_count=_count(downspouts, 'downspouts', DEFAULT_DOWNSPOUTS),
        slopes=(SlopeVariables(name='F1', **facet), SlopeVariables(name='F2', **facet)),
    )


def _resolve_slope(index, record) -> SlopeVariables:
    name = record.get('name') or f"F{record.get('slope_number') or index + 1}"
    rise = validate_pitch(record.get('pitch'))

    square_feet = record.get('sqft')
    if square_feet is None and record.get('squares') is not None:
        square_feet = _measurement(record.get('squares'), f'{name}.squares') * SQFT_PER_SQUARE
    elif square_feet is None and record.get('plan_sqft') is not None:
        # Flat footprint of the facet; convert to true surface area
        square_feet = _measurement(record.get('plan_sqft'), f'{name}.plan_sqft') * pitch_multiplier(rise)
    square_feet = _measurement(square_feet, f'{name}.sqft')

    return SlopeVariables(
        name=name,
        squares=square_feet / SQFT_PER_SQUARE,
        square_feet=square_feet,
        pitch=rise,
        eave=_measurement(record.get('eave_lf'), f'{name}.eave_lf'),
        ridge=_measurement(record.get('ridge_lf'), f'{name}.ridge_lf'),
        valley=_measurement(record.get('valley_lf'), f'{name}.valley_lf'),
        hip=_measurement(record.get('hip_lf'), f'{name}.hip_lf'),
        rake=_measurement(record.get('rake_lf'), f'{name}.rake_lf'),
    )


def resolve_from_sketch(sketch, slopes=None) -> RoofVariables:
    """
    Build variables from a roof sketch.

    ``sketch`` is a mapping of sketch totals and feature counts; ``slopes`` a
    list of per-facet mappings (falls back to ``sketch['slopes']``). When
    facets are present every area and length total is summed from them so
    the per-slope breakdown always adds up to the whole roof.
    """
    sketch = sketch or {}
    records = slopes if slopes is not None else sketch.get('slopes') or []
    resolved = tuple(_resolve_slope(index, record) for index, record in enumerate(records))

    if resolved:
        square_feet = sum(s.square_feet for s in resolved)
        eave = sum(s.eave for s in resolved)
        ridge = sum(s.ridge for s in resolved)
        valley = sum(s.valley for s in resolved)
        hip = sum(s.hip for s in resolved)
        rake = sum(s.rake for s in resolved)
    else:
        square_feet = sketch.get('total_sqft')
        if square_feet is None and sketch.get('total_squares') is not None:
            square_feet = _measurement(sketch.get('total_squares'), 'total_squares') * SQFT_PER_SQUARE
        square_feet = _measurement(square_feet, 'total_sqft')
        eave = _measurement(sketch.get('total_eave_lf'), 'total_eave_lf')
        ridge = _measurement(sketch.get('total_ridge_lf'), 'total_ridge_lf')
        valley = _measurement(sketch.get('total_valley_lf'), 'total_valley_lf')
        hip = _measurement(sketch.get('total_hip_lf'), 'total_hip_lf')
        rake = _measurement(sketch.get('total_rake_lf'), 'total_rake_lf')

    return RoofVariables(
        squares=square_feet / SQFT_PER_SQUARE,
        square_feet=square_feet,
        perimeter=_measurement(sketch.get('total_perimeter_lf'), 'total_perimeter_lf', eave + rake),
        eave=eave,
        ridge=ridge,
        valley=valley,
        hip=hip,
        rake=rake,
        skylight_count=_count(sketch.get('skylight_count'), 'skylight_count'),
        chimney_count=_count(sketch.get('chimney_count'), 'chimney_count'),
        pipe_count=_count(sketch.get('pipe_boot_count'), 'pipe_boot_count', DEFAULT_PIPE_BOOTS),
        vent_count=_count(sketch.get('vent_count'), 'vent_count'),
        gutter_lf=_measurement(sketch.get('gutter_lf'), 'gutter_lf', eave),
        downspout_count=_count(sketch.get('downspout_count'), 'downspout_count', DEFAULT_DOWNSPOUTS),
        slopes=resolved,
    )


def resolve_from_intake(intake) -> RoofVariables:
    """Rough geometry from the quick intake form, assuming a square footprint."""
    intake = intake or {}
    try:
        plan_sqft = float(intake.get('roof_size_sqft') or 0)
    except (TypeError, ValueError):
        plan_sqft = 0
    if plan_sqft <= 0:
        plan_sqft = DEFAULT_INTAKE_SQFT

    try:
        stories = max(int(intake.get('stories') or 1), 1)
    except (TypeError, ValueError):
        stories = 1

    rise = PITCH_CATEGORY_RISE.get(intake.get('roof_pitch') or 'medium', PITCH_CATEGORY_RISE['medium'])
    side = math.sqrt(plan_sqft)

    return resolve_from_dimensions(
        length_ft=side,
        width_ft=side,
        pitch=rise,
        stories=stories,
        skylights=1 if intake.get('has_skylights') else 0,
        chimneys=1 if intake.get('has_chimneys') else 0,
        pipe_boots=2 + stories,
        vents=math.ceil(plan_sqft / 500),
        downspouts=math.ceil(side / 20),
    )


def resolve(source) -> RoofVariables:
    """Dispatch to the sketch or dimension resolver based on the keys present."""
    if source is None:
        return RoofVariables()
    if isinstance(source, RoofVariables):
        return source
    if 'slopes' in source or any(key.startswith('total_') for key in source):
        return resolve_from_sketch(source)
    if 'length_ft' in source or 'width_ft' in source:
        return resolve_from_dimensions(**{
            key: source.get(key) for key in (
                'length_ft', 'width_ft', 'pitch', 'stories', 'skylights', 'chimneys',
                'pipe_boots', 'vents', 'gutter_lf', 'downspouts',
            ) if key in source
        })
    return resolve_from_intake(source)


def validate_variables(variables: RoofVariables, strict: bool = False):
    """
    Sanity-check resolved variables.

    Returns a dict with ``valid``, ``errors`` and ``warnings``. With
    ``strict=True`` a ValidationError is raised when any error is found.
    """
    errors = []
    warnings = []

    if variables.squares < 0:
        errors.append('Squares cannot be negative')
    if variables.square_feet < 0:
        errors.append('Square feet cannot be negative')
    if variables.eave < 0:
        errors.append('Eave length cannot be negative')
    if variables.ridge < 0:
        errors.append('Ridge length cannot be negative')

    if variables.squares > 200:
        warnings.append('Very large roof (>200 squares)')
    if variables.squares < 5:
        warnings.append('Very small roof (<5 squares)')

    if abs(variables.square_feet - variables.squares * SQFT_PER_SQUARE) > 10:
        warnings.append('SF and SQ values are inconsistent')

    if variables.square_feet > 0 and variables.perimeter > 0:
        ratio = variables.square_feet / variables.perimeter
        if ratio < 5 or ratio > 50:
            warnings.append('Unusual area to perimeter ratio - please verify measurements')

    if strict and errors:
        raise ValidationError('Invalid roof measurements', details={'errors': errors})

    for warning in warnings:
        logger.debug(f"Roof variable warning: {warning}")

    return {'valid': not errors, 'errors': errors, 'warnings': warnings}
