import asyncio
import json

import pytest
from aiohttp import test_utils, web

from contact_graph.data import loader
from contact_graph.data.loader import load_dataset, load_dataset_async, normalize_links
from contact_graph.errors import DataLoadError


def write(path, payload):
    path.write_text(json.dumps(payload), encoding='utf-8')
    return str(path)


def test_normalize_links_maps_infection_fields_without_mutating_input():
    raw = [{'infector': 'A', 'infectee': 'B', 'date': '2021-03-01'}]
    links = normalize_links(raw)
    assert links == [{'infector': 'A', 'infectee': 'B', 'date': '2021-03-01', 'source': 'A', 'target': 'B'}]
    assert 'source' not in raw[0]


def test_normalize_links_keeps_existing_source_target():
    assert normalize_links([{'source': 'A', 'target': 'B'}]) == [{'source': 'A', 'target': 'B'}]


def test_load_dataset_from_files(tmp_path):
    cases = write(tmp_path / 'cases.json', [{'id': 'A', 'gender': 'f'}, {'id': 'B', 'gender': 'm'}])
    links = write(tmp_path / 'links.json', [{'infector': 'A', 'infectee': 'B'}])
    dataset = load_dataset(cases, links)
    assert [c['id'] for c in dataset.nodes] == ['A', 'B']
    assert dataset.links[0]['source'] == 'A'
    assert dataset.links[0]['target'] == 'B'


def test_missing_file_is_a_load_error(tmp_path):
    cases = write(tmp_path / 'cases.json', [])
    with pytest.raises(DataLoadError) as exc:
        load_dataset(cases, str(tmp_path / 'nope.json'))
    assert 'nope.json' in str(exc.value)


def test_invalid_json_is_a_load_error(tmp_path):
    bad = tmp_path / 'links.json'
    bad.write_text('[{"infector": ', encoding='utf-8')
    cases = write(tmp_path / 'cases.json', [])
    with pytest.raises(DataLoadError):
        load_dataset(cases, str(bad))


def test_non_array_payload_is_a_load_error(tmp_path):
    cases = write(tmp_path / 'cases.json', {'id': 'A'})
    links = write(tmp_path / 'links.json', [])
    with pytest.raises(DataLoadError) as exc:
        load_dataset(cases, links)
    assert 'JSON array' in exc.value.reason


def test_both_sources_are_requested_before_the_dataset_is_built(monkeypatch):
    started = []

    async def fake_fetch(source, session=None):
        started.append(source)
        await asyncio.sleep(0)
        # both fetches are in flight before either completes
        assert len(started) == 2
        return [{'id': 'A'}] if source == 'cases' else [{'infector': 'A', 'infectee': 'A'}]

    monkeypatch.setattr(loader, 'fetch_json', fake_fetch)
    dataset = load_dataset('cases', 'links')
    assert sorted(started) == ['cases', 'links']
    assert dataset.nodes == ({'id': 'A'},)
    assert dataset.links[0]['target'] == 'A'


def test_url_sources_use_an_http_session(monkeypatch):
    sessions = []

    async def fake_fetch(source, session=None):
        sessions.append(session)
        return []

    monkeypatch.setattr(loader, 'fetch_json', fake_fetch)
    load_dataset('http://example.invalid/cases.json', 'http://example.invalid/links.json')
    assert len(sessions) == 2
    assert all(s is not None for s in sessions)


CASES = [{'id': 'A', 'gender': 'female'}, {'id': 'B', 'gender': 'male'}]
LINKS = [{'infector': 'A', 'infectee': 'B'}]


async def cases_handler(request):
    return web.json_response(CASES)


async def links_as_text_handler(request):
    # some static hosts serve JSON as text/plain
    return web.Response(text=json.dumps(LINKS), content_type='text/plain')


async def slow_handler(request):
    await asyncio.sleep(1.0)
    return web.json_response([])


def load_from_server(routes, cases_path, links_path, timeout=5.0):
    async def run():
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            return await load_dataset_async(
                str(server.make_url(cases_path)), str(server.make_url(links_path)), timeout,
            )
        finally:
            await server.close()

    return asyncio.run(run())


def test_load_dataset_over_http():
    dataset = load_from_server(
        {'/cases.json': cases_handler, '/links.json': links_as_text_handler},
        '/cases.json', '/links.json',
    )
    assert [c['id'] for c in dataset.nodes] == ['A', 'B']
    assert (dataset.links[0]['source'], dataset.links[0]['target']) == ('A', 'B')


def test_http_error_status_is_a_load_error():
    with pytest.raises(DataLoadError) as exc:
        load_from_server({'/cases.json': cases_handler}, '/cases.json', '/missing.json')
    assert exc.value.source.endswith('/missing.json')
    assert '404' in exc.value.reason


def test_slow_source_times_out_as_a_load_error():
    with pytest.raises(DataLoadError) as exc:
        load_from_server(
            {'/cases.json': cases_handler, '/links.json': slow_handler},
            '/cases.json', '/links.json', timeout=0.1,
        )
    assert 'links.json' in str(exc.value)
