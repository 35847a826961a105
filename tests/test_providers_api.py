from medicaidready import analytics
from medicaidready.access import ROLE_HEADER
from medicaidready.errors import DatabaseReadError


def _checklist_item(payload, key):
    return next(item for item in payload['checklist'] if item['key'] == key)


def test_health_reports_configuration(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    data = resp.json()
    assert data['ok'] is True
    assert data['service'] == 'medicaidready-api'
    assert data['readOnlyMode'] is False
    assert data['accessControlEnabled'] is False
    assert data['timestamp'].endswith('Z')


def test_trace_id_is_echoed(client):
    resp = client.get('/health', headers={'X-Trace-Id': 'trace-123'})
    assert resp.headers['X-Trace-Id'] == 'trace-123'
    assert client.get('/health').headers['X-Trace-Id']


def test_provider_health(client):
    data = client.get('/api/providers/abc/health').json()
    assert data['ok'] is True
    assert data['providerId'] == 'abc'
    assert data['status'] == 'healthy'


def test_list_providers_empty(client):
    resp = client.get('/api/providers')
    assert resp.status_code == 200
    assert resp.json() == {'ok': True, 'providers': []}


def test_create_provider_generates_id(client):
    resp = client.post('/api/providers', json={'name': 'Sunrise Clinic', 'jurisdiction_code': 'TX'})
    assert resp.status_code == 201
    data = resp.json()
    assert data['created'] is True
    provider = data['provider']
    assert provider['id'].startswith('sunrise-clinic-')
    assert provider['meta']['jurisdiction_code'] == 'TX'
    assert provider['onboardStatus'] == 'not_started'
    assert provider['progress']['total'] == 5

    listed = client.get('/api/providers').json()['providers']
    assert [p['id'] for p in listed] == [provider['id']]


def test_create_existing_provider_returns_200(client):
    assert client.post('/api/providers', json={'id': 'p1', 'name': 'First'}).status_code == 201
    resp = client.post('/api/providers', json={'id': 'p1', 'name': 'Second'})
    assert resp.status_code == 200
    assert resp.json()['created'] is False
    assert resp.json()['provider']['meta']['name'] == 'First'


def test_checklist_is_created_on_first_access(client):
    data = client.get('/api/providers/new-provider/checklist').json()
    assert data['providerId'] == 'new-provider'
    assert [item['key'] for item in data['checklist']] == [
        'provider_profile',
        'credentialing',
        'enrollment',
        'compliance_training',
        'attestation',
    ]
    assert {item['status'] for item in data['checklist']} == {'not_started'}


def test_checklist_completed_at_lifecycle(client):
    resp = client.patch('/api/providers/p1/checklist', json={'key': 'credentialing', 'status': 'complete'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['updatedKeys'] == ['credentialing']
    completed_at = _checklist_item(data, 'credentialing')['completedAt']
    assert completed_at

    again = client.put(
        '/api/providers/p1/checklist',
        json={'items': [{'key': 'credentialing', 'status': 'complete', 'notes': 'verified'}]},
    ).json()
    item = _checklist_item(again, 'credentialing')
    assert item['completedAt'] == completed_at
    assert item['notes'] == 'verified'

    reopened = client.patch('/api/providers/p1/checklist', json={'key': 'credentialing', 'status': 'in_progress'})
    assert 'completedAt' not in _checklist_item(reopened.json(), 'credentialing')


def test_checklist_update_skips_invalid_entries(client):
    resp = client.patch(
        '/api/providers/p1/checklist',
        json={'items': [{'key': 'unknown', 'status': 'complete'}, {'key': 'enrollment', 'status': 'done'}]},
    )
    assert resp.status_code == 400
    assert resp.json()['error'] == 'no_valid_updates'
    assert resp.json()['ok'] is False


def test_checklist_update_requires_body(client):
    resp = client.patch('/api/providers/p1/checklist', json={})
    assert resp.status_code == 400
    assert resp.json()['error'] == 'invalid_body'


def test_complete_item(client):
    data = client.post('/api/providers/p1/complete', json={'key': 'attestation', 'notes': 'signed'}).json()
    assert data['action'] == 'checklist_item_completed'
    assert data['completedKey'] == 'attestation'
    item = _checklist_item(data, 'attestation')
    assert item['status'] == 'complete'
    assert item['completedAt']
    assert item['notes'] == 'signed'


def test_complete_unknown_item_is_404(client):
    resp = client.post('/api/providers/p1/complete', json={'key': 'nope'})
    assert resp.status_code == 404
    assert resp.json()['error'] == 'checklist_item_not_found'


def test_complete_requires_key_or_flag(client):
    resp = client.post('/api/providers/p1/complete', json={})
    assert resp.status_code == 400
    assert resp.json()['error'] == 'invalid_body'


def test_complete_onboarding(client):
    data = client.post('/api/providers/p1/complete', json={'completeOnboarding': True}).json()
    assert data['action'] == 'onboarding_completed'
    assert data['onboard']['status'] == 'complete'
    assert data['onboard']['startedAt']
    assert data['onboard']['completedAt']


def test_onboard_transitions(client):
    initial = client.get('/api/providers/p1/onboard').json()
    assert initial['onboard'] == {'status': 'not_started'}

    started = client.post(
        '/api/providers/p1/onboard',
        json={'contact': {'name': 'Ada Lovelace', 'email': ' '}, 'org': {'name': 'Analytical Care'}},
    ).json()['onboard']
    assert started['status'] == 'in_progress'
    assert started['startedAt']
    assert started['contact'] == {'name': 'Ada Lovelace', 'email': None, 'phone': None}
    assert started['org']['name'] == 'Analytical Care'

    done = client.patch('/api/providers/p1/onboard', json={'status': 'complete'}).json()['onboard']
    assert done['status'] == 'complete'
    assert done['startedAt'] == started['startedAt']
    assert done['completedAt']
    assert done['contact']['name'] == 'Ada Lovelace'

    reopened = client.put('/api/providers/p1/onboard', json={'status': 'in_progress'}).json()['onboard']
    assert reopened['status'] == 'in_progress'
    assert 'completedAt' not in reopened

    reset = client.put('/api/providers/p1/onboard', json={'status': 'not_started'}).json()['onboard']
    assert reset['status'] == 'not_started'
    assert 'startedAt' not in reset
    assert reset['org']['name'] == 'Analytical Care'


def test_snapshot(client):
    client.post('/api/providers/p1/complete', json={'key': 'enrollment'})
    data = client.get('/api/providers/p1/snapshot').json()
    assert data['ok'] is True
    assert data['providerId'] == 'p1'
    assert data['progress']['complete'] == 1
    assert data['progress']['percentComplete'] == 20
    assert data['snapshotAt'].endswith('Z')


def test_analytics_payload_and_history(client):
    client.post('/api/providers', json={'id': 'p1', 'name': 'Clinic', 'jurisdiction_code': 'OH'})
    for key in ('provider_profile', 'credentialing', 'enrollment'):
        client.post('/api/providers/p1/complete', json={'key': key})

    resp = client.get('/api/providers/analytics')
    assert resp.status_code == 200
    data = resp.json()
    assert data['ok'] is True
    assert data['role'] == 'admin'
    assert data['riskSummary'] == {'high': 0, 'medium': 1, 'low': 0}
    assert data['stateSummary'] == {'OH': {'total': 1, 'high': 0, 'medium': 1, 'low': 0}}
    row = data['rows'][0]
    assert row['id'] == 'p1'
    assert row['name'] == 'Clinic'
    assert row['score'] == 60
    assert row['status'] == 'in_progress'
    assert row['trend'] == '→'

    ledger = client.get('/api/providers/p1/history').json()['history']
    assert [(entry['monthKey'], entry['score']) for entry in ledger] == [(data['monthKey'], 60)]

    client.get('/api/providers/analytics')
    assert len(client.get('/api/providers/p1/history').json()['history']) == 1


def test_analytics_failure_is_reported(client, monkeypatch):
    def _boom(self):
        raise DatabaseReadError('connection refused')

    monkeypatch.setattr(analytics.ProviderRepository, 'list_all', _boom)
    resp = client.get('/api/providers/analytics')
    assert resp.status_code == 500
    assert resp.json()['ok'] is False
    assert resp.json()['error'] == 'analytics_failed'


def test_read_only_mode_blocks_writes(make_client):
    client = make_client(read_only_mode=True)
    resp = client.post('/api/providers', json={'name': 'Blocked'})
    assert resp.status_code == 403
    assert resp.json()['error'] == 'read_only_mode'

    assert client.patch('/api/providers/p1/checklist', json={'key': 'enrollment', 'status': 'complete'}).status_code == 403
    assert client.post('/api/providers/p1/complete', json={'key': 'enrollment'}).status_code == 403
    assert client.put('/api/providers/p1/onboard', json={'status': 'complete'}).status_code == 403
    assert client.get('/api/providers').status_code == 200
    assert client.get('/api/providers/p1/checklist').status_code == 200


def test_roles_gate_provider_creation(make_client):
    client = make_client(access_control_enabled=True)

    assert client.get('/api/providers').status_code == 200
    denied = client.post('/api/providers', json={'name': 'Clinic'}, headers={ROLE_HEADER: 'analyst'})
    assert denied.status_code == 403
    assert denied.json()['error'] == 'forbidden'
    assert denied.json()['role'] == 'analyst'

    allowed = client.post('/api/providers', json={'name': 'Clinic'}, headers={ROLE_HEADER: 'Admin'})
    assert allowed.status_code == 201


def test_analytics_reports_caller_role(make_client):
    client = make_client(access_control_enabled=True)
    assert client.get('/api/providers/analytics').json()['role'] == 'viewer'
    assert client.get('/api/providers/analytics', headers={ROLE_HEADER: 'analyst'}).json()['role'] == 'analyst'


def test_unknown_route_uses_error_envelope(client):
    resp = client.get('/api/nowhere')
    assert resp.status_code == 404
    assert resp.json()['ok'] is False
    assert resp.json()['error'] == 'not_found'


def test_metrics_exposes_counters(client):
    client.get('/health')
    resp = client.get('/metrics')
    assert resp.status_code == 200
    assert 'medicaidready_http_requests_total' in resp.text


def test_history_of_unknown_provider_is_404(client):
    resp = client.get('/api/providers/ghost/history')
    assert resp.status_code == 404
    assert resp.json()['error'] == 'provider_not_found'
