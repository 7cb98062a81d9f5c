import pytest

from roofing_estimator.app import create_app
from roofing_estimator.models import (
    db, Lead, LeadIntake, LineItem, EstimateMacro, MacroLineItem, GeographicPricing,
)
from roofing_estimator.services.geometry import RoofVariables, SlopeVariables


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def sample_variables():
    """25 square single-story gable roof with two equal facets"""
    facet = dict(squares=12.5, square_feet=1250.0, pitch=5.0, eave=50.0, ridge=25.0,
                 valley=10.0, hip=0.0, rake=40.0)
    return RoofVariables(
        squares=25.0,
        square_feet=2500.0,
        perimeter=200.0,
        eave=100.0,
        ridge=50.0,
        valley=20.0,
        hip=0.0,
        rake=80.0,
        skylight_count=1,
        chimney_count=1,
        pipe_count=4,
        vent_count=3,
        gutter_lf=100.0,
        downspout_count=4,
        slopes=(SlopeVariables(name='F1', **facet), SlopeVariables(name='F2', **facet)),
    )


@pytest.fixture
def lead(session):
    lead = Lead(name='Pat Homeowner', zip_code='80202', state='CO')
    lead.intake = LeadIntake(
        job_type='full_replacement',
        roof_size_sqft=2000,
        roof_material='asphalt_shingle',
        roof_pitch='medium',
        stories=1,
    )
    session.add(lead)
    session.commit()
    return lead


@pytest.fixture
def catalog(session):
    """Shingles, tear-off and a dumpster; keyed by item code"""
    items = {
        'RFG420': LineItem(item_code='RFG420', name='Shingles - Architectural', category='shingles',
                           unit_type='SQ', base_material_cost=125, base_labor_cost=95,
                           base_equipment_cost=10, quantity_formula='SQ * 1.10', is_taxable=True,
                           sort_order=100),
        'RFG100': LineItem(item_code='RFG100', name='Tear Off - 1 Layer', category='tear_off',
                           unit_type='SQ', base_material_cost=5, base_labor_cost=85,
                           base_equipment_cost=15, quantity_formula='SQ', is_taxable=False,
                           sort_order=10),
        'DSP100': LineItem(item_code='DSP100', name='Dumpster', category='disposal', unit_type='LS',
                           base_material_cost=0, base_labor_cost=0, base_equipment_cost=450,
                           quantity_formula='1', is_taxable=False, sort_order=900),
    }
    session.add_all(items.values())
    session.commit()
    return items


@pytest.fixture
def macro(session, catalog):
    macro = EstimateMacro(name='Shingle Replacement', roof_type='asphalt_shingle', job_type='full_replacement')
    macro.line_items = [
        MacroLineItem(line_item=catalog['RFG100'], sort_order=0),
        MacroLineItem(line_item=catalog['RFG420'], sort_order=1),
        MacroLineItem(line_item=catalog['DSP100'], sort_order=2, is_optional=True, is_selected_by_default=False),
    ]
    session.add(macro)
    session.commit()
    return macro


@pytest.fixture
def region(session):
    region = GeographicPricing(
        name='Denver Metro', state='CO', county='Denver', zip_codes=['80202', '80203'],
        material_multiplier=1.1, labor_multiplier=1.3, equipment_multiplier=1.3,
    )
    session.add(region)
    session.commit()
    return region
