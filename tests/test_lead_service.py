import pytest

from roofing_estimator.errors import NotFoundError, ValidationError
from roofing_estimator.services import lead_service

pytestmark = pytest.mark.usefixtures('app')

SKETCH = {
    'skylight_count': 1,
    'slopes': [
        {'slope_number': 1, 'sqft': 1200, 'pitch': 6, 'eave_lf': 40, 'ridge_lf': 40, 'rake_lf': 30},
        {'slope_number': 2, 'sqft': 1200, 'pitch': 6, 'eave_lf': 40, 'rake_lf': 30},
    ],
}


def test_create_lead_with_intake():
    lead = lead_service.create_lead({
        'name': 'Sam Rivera',
        'state': 'co',
        'zip_code': '80203-1234',
        'intake': {'job_type': 'full_replacement', 'roof_size_sqft': '1800', 'roof_pitch': 'steep',
                   'issues': ['leaks'], 'has_skylights': 'yes'},
    })

    assert lead.id is not None
    assert lead.state == 'CO'
    assert lead.intake.roof_size_sqft == 1800
    assert lead.intake.has_skylights is True
    assert lead.intake.issues == ['leaks']


@pytest.mark.parametrize('data', [
    {},
    {'name': 'Sam', 'zip_code': 'ABCDE'},
    {'name': 'Sam', 'intake': {'roof_pitch': 'vertical'}},
    {'name': 'Sam', 'intake': {'stories': 0}},
    {'name': 'Sam', 'intake': {'issues': 'leaks'}},
])
def test_invalid_leads(data):
    with pytest.raises(ValidationError):
        lead_service.create_lead(data)


def test_update_intake_keeps_other_answers(lead):
    lead_service.update_intake(lead.id, {'stories': 2})
    assert lead.intake.stories == 2
    assert lead.intake.roof_material == 'asphalt_shingle'


def test_update_intake_for_unknown_lead():
    with pytest.raises(NotFoundError):
        lead_service.update_intake(12345, {'stories': 2})


def test_saved_sketch_becomes_lead_geometry(lead):
    sketch, variables, warnings = lead_service.save_sketch(lead.id, SKETCH)

    assert sketch.id is not None
    assert variables.squares == pytest.approx(24)
    assert variables.eave == 80
    assert warnings == []

    current, source_sketch, check = lead_service.lead_variables(lead.id)
    assert source_sketch.id == sketch.id
    assert current.squares == pytest.approx(24)
    assert current.skylight_count == 1
    assert check['valid'] is True


def test_newest_sketch_wins(lead):
    lead_service.save_sketch(lead.id, SKETCH)
    newest, _, _ = lead_service.save_sketch(lead.id, {'total_sqft': 3000, 'total_eave_lf': 150})

    variables, sketch, _ = lead_service.lead_variables(lead.id)
    assert sketch.id == newest.id
    assert variables.squares == pytest.approx(30)


def test_intake_is_used_without_sketch(lead):
    variables, sketch, _ = lead_service.lead_variables(lead.id)
    assert sketch is None
    assert variables.square_feet > 2000


@pytest.mark.parametrize('data', [
    {'slopes': [{'slope_number': 1, 'sqft': 1000, 'pitch': 30}]},
    {'slopes': [{'slope_number': 1, 'sqft': 1000}, {'slope_number': 1, 'sqft': 900}]},
    {'slopes': {'sqft': 1000}},
    {'total_sqft': -10},
])
def test_rejected_sketches(lead, data):
    with pytest.raises(ValidationError):
        lead_service.save_sketch(lead.id, data)
