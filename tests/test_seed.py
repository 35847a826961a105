import json

from medicaidready import history
from medicaidready.db.session import session_scope
from medicaidready.providers import ProviderRepository
from medicaidready.seed import normalise_providers, seed

from scripts import seed_providers


def test_normalise_providers_accepts_archive_shapes():
    records = [{'id': 'a'}, {'id': 'b'}]
    assert normalise_providers(records) == records
    assert normalise_providers({'providers': records}) == records
    assert normalise_providers({'providers': {'a': {'id': 'a'}}}) == [{'id': 'a'}]
    assert normalise_providers({'a': {'id': 'a'}, 'junk': 3}) == [{'id': 'a'}]
    assert normalise_providers('nonsense') == []


def test_seed_is_repeatable(session):
    providers = {'providers': [{'id': 'p1', 'name': 'Clinic', 'meta': {'jurisdiction_code': 'TX'}, 'checklist': []}]}
    archive = {'history': {'p1': {'2024-01': 40, '2024-02': 55}}}

    first = seed(session, providers, archive)
    second = seed(session, providers, archive)

    assert first.to_dict() == second.to_dict() == {
        'ok': True,
        'seeded': True,
        'providersUpserted': 1,
        'historyUpserted': 2,
    }
    assert [e['score'] for e in history.list_history(session, 'p1')] == [40, 55]
    assert ProviderRepository(session).get('p1').meta_dict() == {'jurisdiction_code': 'TX'}


def test_cli_seeds_database(tmp_path, engine, monkeypatch, capsys):
    providers_file = tmp_path / 'providers.json'
    history_file = tmp_path / 'compliance-history.json'
    providers_file.write_text(json.dumps([{'id': 'p1', 'name': 'Clinic'}]), encoding='utf-8')
    history_file.write_text(json.dumps({'history': {'p1': {'2024-04': 70}}}), encoding='utf-8')

    # Keep the in-memory test engine instead of building a new one
    monkeypatch.setattr(seed_providers, 'configure_engine', lambda url=None: engine)
    exit_code = seed_providers.main(['--providers', str(providers_file), '--history', str(history_file)])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)['historyUpserted'] == 1
    with session_scope() as db:
        assert ProviderRepository(db).get('p1').name == 'Clinic'


def test_cli_reports_unreadable_archive(tmp_path):
    assert seed_providers.main(['--providers', str(tmp_path / 'missing.json')]) == 1


def test_cli_skips_non_numeric_scores(tmp_path, engine, monkeypatch, capsys):
    providers_file = tmp_path / 'providers.json'
    history_file = tmp_path / 'compliance-history.json'
    providers_file.write_text(json.dumps([{'id': 'a', 'name': 'Clinic'}]), encoding='utf-8')
    history_file.write_text(json.dumps({'history': {'a': {'2024-01': 'n/a', '2024-02': 55}}}), encoding='utf-8')

    monkeypatch.setattr(seed_providers, 'configure_engine', lambda url=None: engine)
    exit_code = seed_providers.main(['--providers', str(providers_file), '--history', str(history_file)])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)['historyUpserted'] == 1
    with session_scope() as db:
        assert [e['score'] for e in history.list_history(db, 'a')] == [55]
