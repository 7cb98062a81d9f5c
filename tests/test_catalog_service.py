import pytest

from roofing_estimator.errors import ConflictError, FormulaError, NotFoundError, ValidationError
from roofing_estimator.models import EstimateMacro, LineItem, MacroLineItem
from roofing_estimator.services import catalog_service, providers
from roofing_estimator.services.seed import DEFAULT_MACRO_NAME, seed_all

pytestmark = pytest.mark.usefixtures('app')


class TestLineItems:
    def test_create_with_suggested_formula(self):
        item = catalog_service.create_line_item({
            'item_code': 'FLS110', 'name': 'Drip Edge', 'category': 'drip_edge', 'unit_type': 'LF',
            'base_material_cost': 1.1, 'base_labor_cost': '0.9',
        })

        assert item.id is not None
        assert item.quantity_formula == 'EAVE + RAKE'
        assert item.base_labor_cost == 0.9
        assert item.default_waste_factor == 1.0

    def test_duplicate_item_code(self, catalog):
        with pytest.raises(ConflictError):
            catalog_service.create_line_item({'item_code': 'RFG420', 'name': 'Again', 'category': 'shingles'})

    def test_invalid_formula_is_rejected(self):
        with pytest.raises(FormulaError):
            catalog_service.create_line_item({'item_code': 'X1', 'name': 'Bad', 'category': 'other',
                                              'quantity_formula': 'SQ * WIDGETS'})
        assert LineItem.query.count() == 0

    @pytest.mark.parametrize('field, value', [
        ('base_material_cost', -1),
        ('default_waste_factor', 0.8),
        ('unit_type', 'GAL'),
    ])
    def test_bad_fields(self, field, value):
        data = {'item_code': 'X1', 'name': 'Bad', 'category': 'other', field: value}
        with pytest.raises(ValidationError):
            catalog_service.create_line_item(data)

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            catalog_service.create_line_item({'name': 'No code', 'category': 'other'})

    def test_partial_update(self, catalog):
        item = catalog_service.update_line_item(catalog['RFG420'].id, {'base_material_cost': 130})
        assert item.base_material_cost == 130
        assert item.quantity_formula == 'SQ * 1.10'

    def test_deactivated_items_are_hidden(self, catalog):
        catalog_service.deactivate_line_item(catalog['DSP100'].id)

        codes = [item.item_code for item in catalog_service.list_line_items()]
        assert 'DSP100' not in codes
        assert len(catalog_service.list_line_items(include_inactive=True)) == 3
        with pytest.raises(NotFoundError):
            providers.get_line_item(catalog['DSP100'].id)

    def test_filter_by_category(self, catalog):
        assert [item.item_code for item in catalog_service.list_line_items(category='tear_off')] == ['RFG100']


class TestMacros:
    def test_duplicate_pairing_is_a_conflict(self, macro, catalog):
        with pytest.raises(ConflictError):
            catalog_service.add_line_item_to_macro(macro.id, {'line_item_id': catalog['RFG420'].id})
        assert MacroLineItem.query.filter_by(macro_id=macro.id).count() == 3

    def test_added_item_goes_last(self, session, macro):
        vent = LineItem(item_code='VNT100', name='Ridge Vent', category='ventilation', unit_type='LF',
                        base_material_cost=3.25, quantity_formula='R')
        session.add(vent)
        session.commit()

        association = catalog_service.add_line_item_to_macro(
            macro.id, {'line_item_id': vent.id, 'waste_factor': 1.05, 'group_name': 'Ventilation'},
        )

        assert association.sort_order == 3
        assert association.waste_factor == 1.05
        assert association.is_selected_by_default is True

    def test_waste_factor_bounds(self, session, macro):
        vent = LineItem(item_code='VNT100', name='Ridge Vent', category='ventilation')
        session.add(vent)
        session.commit()
        with pytest.raises(ValidationError):
            catalog_service.add_line_item_to_macro(macro.id, {'line_item_id': vent.id, 'waste_factor': 2.5})

    def test_remove_line_item(self, macro, catalog):
        catalog_service.remove_line_item_from_macro(macro.id, catalog['DSP100'].id)
        assert [a.line_item.item_code for a in macro.line_items] == ['RFG100', 'RFG420']

        with pytest.raises(NotFoundError):
            catalog_service.remove_line_item_from_macro(macro.id, catalog['DSP100'].id)

    def test_only_one_default_per_roof_and_job_type(self, macro):
        first = catalog_service.create_macro({'name': 'Budget Reroof', 'roof_type': 'asphalt_shingle',
                                              'job_type': 'full_replacement', 'is_default': True})
        second = catalog_service.update_macro(macro.id, {'is_default': True})

        assert second.is_default is True
        assert first.is_default is False

    def test_list_matches_any(self, macro):
        catalog_service.create_macro({'name': 'General Repair', 'job_type': 'repair'})
        catalog_service.create_macro({'name': 'Universal'})

        names = [m.name for m in catalog_service.list_macros(roof_type='asphalt_shingle', job_type='full_replacement')]
        assert sorted(names) == ['Shingle Replacement', 'Universal']

    def test_unknown_job_type(self):
        with pytest.raises(ValidationError):
            catalog_service.create_macro({'name': 'Odd', 'job_type': 'demolition'})

    def test_system_macro_is_protected(self):
        seed_all()
        system = EstimateMacro.query.filter_by(name=DEFAULT_MACRO_NAME).one()

        with pytest.raises(ConflictError):
            catalog_service.update_macro(system.id, {'name': 'Renamed'})
        with pytest.raises(ConflictError):
            catalog_service.deactivate_macro(system.id)

    def test_deleted_macro_is_gone(self, macro):
        catalog_service.deactivate_macro(macro.id)
        assert catalog_service.list_macros() == []
        with pytest.raises(NotFoundError):
            providers.get_macro(macro.id)


class TestRegions:
    def test_create_normalizes_fields(self):
        region = catalog_service.create_region({
            'name': 'Boulder County', 'state': 'co', 'county': 'Boulder',
            'zip_codes': ['80302', '80301', '80302'], 'labor_multiplier': 1.2,
        })

        assert region.state == 'CO'
        assert region.zip_codes == ['80301', '80302']
        assert region.labor_multiplier == 1.2
        assert region.material_multiplier == 1.0

    @pytest.mark.parametrize('data', [
        {'name': 'Bad', 'state': 'Colorado'},
        {'name': 'Bad', 'state': 'CO', 'zip_codes': '80202'},
        {'name': 'Bad', 'state': 'CO', 'zip_codes': ['802']},
        {'name': 'Bad', 'state': 'CO', 'material_multiplier': 4},
    ])
    def test_rejected_regions(self, data):
        with pytest.raises(ValidationError):
            catalog_service.create_region(data)

    def test_county_region_wins_over_state_region(self, region):
        statewide = catalog_service.create_region({'name': 'Colorado', 'state': 'CO',
                                                   'zip_codes': ['80202', '81501']})

        assert providers.find_region_by_zip('80202').id == region.id
        assert providers.find_region_by_zip('81501').id == statewide.id
        assert providers.find_region_by_zip('99999') is None

    def test_deactivated_region_no_longer_matches(self, region):
        catalog_service.deactivate_region(region.id)
        assert providers.find_region_by_zip('80202') is None
        assert catalog_service.list_regions('co') == []

    def test_update(self, region):
        updated = catalog_service.update_region(region.id, {'labor_multiplier': 1.4})
        assert updated.labor_multiplier == 1.4
        assert updated.name == 'Denver Metro'


def test_seed_is_idempotent():
    first = seed_all()
    second = seed_all()

    assert first['line_items'] == 14
    assert first['default_macro'] is True
    assert second == {'pricing_rules': 0, 'line_items': 0, 'default_macro': False}
    assert LineItem.query.count() == 14
