import pytest

from roofing_estimator.services.seed import seed_all

MEASUREMENTS = {'length_ft': 50, 'width_ft': 50}


class TestHealth:
    def test_health_reports_default_rules_as_degraded(self, client):
        response = client.get('/api/health')
        body = response.get_json()

        assert response.status_code == 200
        assert body['status'] == 'degraded'
        assert body['checks']['database']['type'] == 'SQLite'
        assert body['checks']['pricing_data']['using_default_rules'] is True
        assert body['checks']['application']['blueprints']['missing_critical'] == []

    def test_health_after_seed(self, client):
        seed_all()
        body = client.get('/api/health').get_json()
        assert body['status'] == 'healthy'
        assert body['checks']['pricing_data']['line_items'] == 14

    def test_simple_health(self, client):
        assert client.get('/api/health/simple').status_code == 200

    def test_index_lists_endpoints(self, client):
        body = client.get('/').get_json()
        assert body['status'] == 'running'
        assert 'leads' in body['endpoints']

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'


class TestLeads:
    def test_create_and_fetch(self, client):
        response = client.post('/api/leads', json={
            'name': 'Robin Lee', 'zip_code': '80202', 'intake': {'job_type': 'repair', 'issues': ['leaks']},
        })
        assert response.status_code == 201
        lead_id = response.get_json()['id']

        assert client.get(f'/api/leads/{lead_id}').get_json()['name'] == 'Robin Lee'

    def test_validation_error_shape(self, client):
        response = client.post('/api/leads', json={'zip_code': '80202'})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_ERROR'

    def test_missing_lead(self, client):
        response = client.get('/api/leads/999')
        assert response.status_code == 404

    def test_update_intake(self, client, lead):
        response = client.put(f'/api/leads/{lead.id}/intake', json={'timeline_urgency': 'asap'})
        assert response.status_code == 200
        assert lead.intake.timeline_urgency == 'asap'

    def test_sketch_round_trip(self, client, lead):
        before = client.get(f'/api/leads/{lead.id}/sketch').get_json()
        assert before['source'] == 'intake'
        assert before['sketch'] is None

        response = client.post(f'/api/leads/{lead.id}/sketch', json={
            'slopes': [
                {'sqft': 1100, 'pitch': 6, 'eave_lf': 44, 'ridge_lf': 44, 'rake_lf': 25},
                {'sqft': 1100, 'pitch': 6, 'eave_lf': 44, 'rake_lf': 25},
            ],
        })
        assert response.status_code == 201
        assert response.get_json()['variables']['SQ'] == pytest.approx(22)

        after = client.get(f'/api/leads/{lead.id}/sketch').get_json()
        assert after['source'] == 'sketch'
        assert after['valid'] is True
        assert after['variables']['EAVE'] == 88
        assert [slope['slope_number'] for slope in after['sketch']['slopes']] == [1, 2]


class TestQuickEstimates:
    def test_generate_and_fetch(self, client, lead):
        response = client.post(f'/api/leads/{lead.id}/estimate')
        body = response.get_json()

        assert response.status_code == 201
        assert body['version'] == 1
        assert body['used_default_rules'] is True
        assert [tier['level'] for tier in body['pricing_tiers']['tiers']] == ['good', 'better', 'best']
        assert body['pricing_tiers']['tiers'][0]['price_likely'] == body['price_likely']

        current = client.get(f'/api/leads/{lead.id}/estimate').get_json()
        assert current['id'] == body['id']

    def test_overrides_and_history(self, client, lead):
        client.post(f'/api/leads/{lead.id}/estimate')
        client.post(f'/api/leads/{lead.id}/estimate', json={'roof_material': 'metal'})

        history = client.get(f'/api/leads/{lead.id}/estimate/history').get_json()
        assert [item['version'] for item in history] == [2, 1]
        assert [item['is_superseded'] for item in history] == [False, True]

    def test_malformed_intake_is_rejected(self, client, lead):
        response = client.post(f'/api/leads/{lead.id}/estimate', json={
            'roof_size_sqft': -4000, 'roof_material': 'metal', 'stories': 'abc', 'issues': 'leaks',
        })

        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_ERROR'
        assert client.get(f'/api/leads/{lead.id}/estimate').status_code == 404

    def test_no_estimate_yet(self, client, lead):
        response = client.get(f'/api/leads/{lead.id}/estimate')
        assert response.status_code == 404

    def test_unknown_lead(self, client):
        assert client.post('/api/leads/999/estimate').status_code == 404


class TestDetailedEstimates:
    def _create(self, client, lead, macro, **extra):
        body = dict(macro_id=macro.id, measurements=MEASUREMENTS, **extra)
        return client.post(f'/api/leads/{lead.id}/detailed-estimates', json=body)

    def test_create(self, client, lead, macro):
        response = self._create(client, lead, macro)
        body = response.get_json()

        assert response.status_code == 201
        assert body['price_likely'] == 11322
        assert body['subtotal'] == 8950.0
        assert body['cost_per_square'] == 452.88
        assert [group['name'] for group in body['groups']] == ['tear_off', 'shingles', 'disposal']
        assert body['groups'][2]['included_total'] == 0

    def test_toggle_line_item(self, client, lead, macro):
        body = self._create(client, lead, macro).get_json()
        shingles = next(item for item in body['line_items'] if item['item_code'] == 'RFG420')

        response = client.patch(f"/api/detailed-estimates/{body['id']}/line-items/{shingles['id']}",
                                json={'is_included': False})

        assert response.status_code == 200
        assert response.get_json()['price_likely'] == 3321

    def test_toggle_requires_flag(self, client, lead, macro):
        body = self._create(client, lead, macro).get_json()
        line_id = body['line_items'][0]['id']
        response = client.patch(f"/api/detailed-estimates/{body['id']}/line-items/{line_id}", json={})
        assert response.status_code == 400

    def test_status_and_locking(self, client, lead, macro):
        body = self._create(client, lead, macro).get_json()
        estimate_id = body['id']

        response = client.post(f'/api/detailed-estimates/{estimate_id}/status', json={'status': 'approved'})
        assert response.get_json()['status'] == 'approved'

        line_id = body['line_items'][0]['id']
        locked = client.patch(f'/api/detailed-estimates/{estimate_id}/line-items/{line_id}',
                              json={'is_included': False})
        assert locked.status_code == 409

    def test_adjust(self, client, lead, macro):
        estimate_id = self._create(client, lead, macro).get_json()['id']

        response = client.post(f'/api/detailed-estimates/{estimate_id}/adjust', json={
            'adjustment_type': 'discount_fixed', 'value': 322, 'description': 'Neighbor referral',
        })
        body = response.get_json()

        assert response.status_code == 201
        assert body['adjustment']['new_price'] == 11000
        assert body['estimate']['adjusted_price'] == 11000

    def test_recalculate_and_history(self, client, lead, macro):
        first = self._create(client, lead, macro).get_json()

        response = client.post(f"/api/detailed-estimates/{first['id']}/recalculate",
                               json={'measurements': {'length_ft': 60, 'width_ft': 50}})
        assert response.status_code == 201
        assert response.get_json()['version'] == 2

        current = client.get(f'/api/leads/{lead.id}/detailed-estimates').get_json()
        history = client.get(f'/api/leads/{lead.id}/detailed-estimates?history=true').get_json()
        assert [item['version'] for item in current] == [2]
        assert [item['version'] for item in history] == [2, 1]

    def test_bad_formula_in_custom_line(self, client, lead, catalog):
        response = client.post(f'/api/leads/{lead.id}/detailed-estimates', json={
            'line_items': [{'line_item_id': catalog['RFG100'].id, 'quantity_formula': 'SQ * GARAGES'}],
            'measurements': MEASUREMENTS,
        })
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_FORMULA'

    def test_get_missing_estimate(self, client):
        assert client.get('/api/detailed-estimates/404').status_code == 404


class TestCatalogApi:
    def test_duplicate_macro_line_item_is_409(self, client, macro, catalog):
        response = client.post(f'/api/macros/{macro.id}/line-items', json={'line_item_id': catalog['RFG100'].id})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'CONFLICT'

    def test_macro_detail_includes_line_items(self, client, macro):
        body = client.get(f'/api/macros/{macro.id}').get_json()
        assert [item['line_item']['item_code'] for item in body['line_items']] == ['RFG100', 'RFG420', 'DSP100']

    def test_create_line_item(self, client):
        response = client.post('/api/line-items', json={
            'item_code': 'GUT100', 'name': 'Gutter', 'category': 'gutters', 'unit_type': 'LF',
            'base_material_cost': 4.5,
        })
        assert response.status_code == 201
        assert response.get_json()['quantity_formula'] == 'GUTTER_LF'

    def test_validate_formula(self, client):
        body = client.post('/api/line-items/validate-formula', json={
            'formula': 'EAVE + RAKE', 'category': 'starter', 'variables': {'EAVE': 100, 'RAKE': 60},
        }).get_json()

        assert body['valid'] is True
        assert body['variables'] == ['EAVE', 'RAKE']
        assert body['result'] == 160
        assert 'SQ' in body['available_variables']

    def test_invalid_formula_is_reported_not_raised(self, client):
        response = client.post('/api/line-items/validate-formula', json={'formula': 'SQ ** 2'})
        assert response.status_code == 200
        assert response.get_json()['valid'] is False

    def test_region_lookup(self, client, region):
        body = client.get('/api/geographic-pricing/lookup?zip=80203').get_json()
        assert body['region']['name'] == 'Denver Metro'
        assert body['adjustment_factor'] == 1.2333

        miss = client.get('/api/geographic-pricing/lookup?zip=10001').get_json()
        assert miss['region'] is None
        assert miss['adjustment_factor'] == 1.0

    def test_region_lookup_rejects_bad_zip(self, client):
        assert client.get('/api/geographic-pricing/lookup?zip=12').status_code == 400

    def test_pricing_rules_fall_back_to_defaults(self, client):
        body = client.get('/api/pricing-rules').get_json()
        assert body['using_defaults'] is True
        assert body['count'] == len(body['rules']) > 0


def test_seed_command(app):
    result = app.test_cli_runner().invoke(args=['seed'])
    assert 'Seeded' in result.output
    assert 'default macro' in result.output
