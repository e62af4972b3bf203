import json

from contact_graph import cli as cli_module


def write_inputs(tmp_path):
    cases = [
        {'id': 'Case 1', 'gender': 'female', 'occupation': 'nurse', 'vaccinated': 'yes'},
        {'id': 'Case 2', 'gender': 'male', 'occupation': 'driver', 'vaccinated': 'no'},
        {'id': 'Case 3', 'gender': 'female', 'vaccinated': 'partial'},
    ]
    links = [
        {'infector': 'Case 1', 'infectee': 'Case 2'},
        {'infector': 'Case 1', 'infectee': 'Case 3'},
    ]
    (tmp_path / 'cases.json').write_text(json.dumps(cases), encoding='utf-8')
    (tmp_path / 'links.json').write_text(json.dumps(links), encoding='utf-8')
    return str(tmp_path / 'cases.json'), str(tmp_path / 'links.json')


def test_render_writes_one_page_per_view(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cases, links = write_inputs(tmp_path)
    out = tmp_path / 'out' / 'index.html'
    code = cli_module.main(['--cases', cases, '--links', links, 'render', '-o', str(out), '--max-ticks', '5'])
    assert code == 0

    gender = out.read_text(encoding='utf-8')
    vaccination = (tmp_path / 'out' / 'index-vaccination.html').read_text(encoding='utf-8')
    assert '<svg' in gender and '<svg' in vaccination
    # the control links point at the sibling pages
    assert 'href="index-vaccination.html"' in gender
    assert 'href="index.html"' in vaccination
    assert 'Case1-Case2' in gender
    assert 'partial' in vaccination
    assert (tmp_path / 'logs' / 'contact_graph.log').exists()


def test_render_active_view_option(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cases, links = write_inputs(tmp_path)
    out = tmp_path / 'graph.html'
    code = cli_module.main(
        ['--cases', cases, '--links', links, 'render', '-o', str(out), '--view', 'vaccination', '--max-ticks', '1']
    )
    assert code == 0
    assert (tmp_path / 'graph-gender.html').exists()
    assert 'partial' in out.read_text(encoding='utf-8')


def test_render_load_failure_writes_error_page(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cases, _ = write_inputs(tmp_path)
    out = tmp_path / 'index.html'
    code = cli_module.main(['--cases', cases, '--links', str(tmp_path / 'missing.json'), 'render', '-o', str(out)])
    assert code == 1
    html = out.read_text(encoding='utf-8')
    assert 'could not be loaded' in html
    assert 'missing.json' in html
    assert not (tmp_path / 'index-vaccination.html').exists()


def test_serve_builds_app_from_sources(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    from server import app as app_module

    seen = {}

    class FakeApp:
        def run(self, host, port):
            seen['bind'] = (host, port)

    def fake_create_app(cases_source=None, links_source=None, **kwargs):
        seen['sources'] = (cases_source, links_source)
        return FakeApp()

    monkeypatch.setattr(app_module, 'create_app', fake_create_app)
    code = cli_module.main(['--cases', 'a.json', '--links', 'b.json', 'serve', '--host', '127.0.0.1', '--port', '8000'])
    assert code == 0
    assert seen == {'sources': ('a.json', 'b.json'), 'bind': ('127.0.0.1', 8000)}
