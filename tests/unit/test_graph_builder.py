from enum import Enum
from itertools import permutations

import numpy as np
import pytest

from contact_graph.config import ViewConfig
from contact_graph.errors import ConfigurationError, UnknownEntityError
from contact_graph.graph import OrdinalScale, build_graph, category_domain, intern
from contact_graph.models import Constant, PerItem, field_getter


def by_gender(**options):
    return ViewConfig(node_group=field_getter('gender'), **options)


def test_two_case_scenario():
    nodes = [{'id': 'A', 'gender': 'f'}, {'id': 'B', 'gender': 'm'}]
    links = [{'source': 'A', 'target': 'B'}]
    model = build_graph(nodes, links, by_gender())
    assert model.ids == ('A', 'B')
    assert model.domain == ('f', 'm')
    assert len(model.relationships) == 1
    rel = model.relationships[0]
    assert (rel.source, rel.target) == ('A', 'B')
    assert (rel.source_index, rel.target_index) == (0, 1)
    assert rel.key == 'A-B'


def test_domain_is_sorted_regardless_of_input_order():
    genders = ['m', 'f', 'x', 'f']
    for order in permutations(genders):
        nodes = [{'id': str(i), 'gender': g} for i, g in enumerate(order)]
        model = build_graph(nodes, [], by_gender())
        assert model.domain == ('f', 'm', 'x')


def test_category_domain_puts_numbers_first_and_skips_missing():
    assert category_domain([3, 'b', None, 1, 'a', 3]) == (1, 3, 'a', 'b')


def test_no_group_accessor_means_no_color_and_no_domain():
    model = build_graph([{'id': 'A', 'gender': 'f'}], [], ViewConfig())
    assert model.color is None
    assert model.domain == ()
    assert model.groups is None


def test_explicit_node_groups_are_kept_in_given_order_without_duplicates():
    nodes = [{'id': 'A', 'gender': 'f'}, {'id': 'B', 'gender': 'm'}]
    model = build_graph(nodes, [], by_gender(node_groups=('m', 'f', 'm')))
    assert model.domain == ('m', 'f')
    assert model.color('m') == '#4e79a7'


def test_dangling_relationship_is_dropped():
    nodes = [{'id': 'A'}, {'id': 'B'}]
    links = [
        {'source': 'A', 'target': 'B'},
        {'source': 'A', 'target': 'Z'},
        {'source': 'Q', 'target': 'B'},
    ]
    model = build_graph(nodes, links, ViewConfig())
    assert [r.key for r in model.relationships] == ['A-B']
    assert [d['missing'] for d in model.dropped] == ['Z', 'Q']
    assert model.relationships[0].index == 0


def test_duplicate_ids_keep_first_record():
    nodes = [{'id': 'A', 'gender': 'f'}, {'id': 'B', 'gender': 'm'}, {'id': 'A', 'gender': 'm'}]
    model = build_graph(nodes, [], by_gender())
    assert model.ids == ('A', 'B')
    assert model.entity('A').group == 'f'


def test_records_without_id_are_skipped():
    model = build_graph([{'gender': 'f'}, {'id': 'B'}], [], ViewConfig())
    assert model.ids == ('B',)
    assert model.entities[0].index == 0


def test_constant_and_per_item_link_styles():
    nodes = [{'id': 'A'}, {'id': 'B'}, {'id': 'C'}]
    links = [{'source': 'A', 'target': 'B', 'w': 1}, {'source': 'B', 'target': 'C', 'w': 4}]

    model = build_graph(nodes, links, ViewConfig())
    assert isinstance(model.link_stroke_width, Constant)
    assert model.link_stroke_width.at(1) == 2.5

    model = build_graph(nodes, links, ViewConfig(link_stroke_width=lambda d: d['w'], link_distance=lambda d: d['w'] * 10))
    assert isinstance(model.link_stroke_width, PerItem)
    assert [model.link_stroke_width.at(i) for i in range(2)] == [1, 4]
    assert model.forces.link_distance.at(1) == 40


def test_titles_default_to_ids_and_can_be_disabled():
    nodes = [{'id': 'A', 'name': 'Alice'}]
    assert build_graph(nodes, [], ViewConfig()).entities[0].title == 'A'
    assert build_graph(nodes, [], ViewConfig(node_title=None)).entities[0].title is None
    assert build_graph(nodes, [], ViewConfig(node_title=field_getter('name'))).entities[0].title == 'Alice'


def test_endpoints_match_by_interned_value():
    class Code(Enum):
        A = 'A'

    nodes = [{'id': 'A'}, {'id': np.str_('B')}]
    links = [{'source': Code.A, 'target': 'B'}]
    model = build_graph(nodes, links, ViewConfig())
    assert len(model.relationships) == 1
    assert model.dropped == []


def test_intern_reduces_to_hashable_primitives():
    assert intern(np.int64(3)) == 3 and type(intern(np.int64(3))) is int
    assert intern(['a', np.float64(1.5)]) == ('a', 1.5)
    assert intern('x') == 'x'


def test_ordinal_scale_cycles_and_appends_unknown_values():
    scale = OrdinalScale(['f', 'm'], ['red', 'blue', 'green'])
    assert scale('f') == 'red'
    assert scale('m') == 'blue'
    assert scale('x') == 'green'
    assert scale('y') == 'red'
    assert scale.domain == ('f', 'm', 'x', 'y')


def test_lookup_of_unknown_entity_raises():
    model = build_graph([{'id': 1}], [], ViewConfig())
    assert model.entity('1').id == 1
    with pytest.raises(UnknownEntityError):
        model.entity('nope')


def test_configuration_errors_are_raised_at_construction():
    with pytest.raises(ConfigurationError):
        ViewConfig(node_id=None)
    with pytest.raises(ConfigurationError):
        ViewConfig(node_group=field_getter('gender'), colors=())
    with pytest.raises(ConfigurationError):
        ViewConfig(width=0)
    with pytest.raises(ConfigurationError):
        ViewConfig(node_title='name')


def test_mapping_ids_and_groups_are_interned_to_hashable_values():
    nodes = [
        {'id': {'site': 'north', 'n': 1}, 'team': {'name': 'red'}},
        {'id': {'n': 2, 'site': 'north'}, 'team': {'name': 'blue'}},
    ]
    links = [{'source': {'n': 1, 'site': 'north'}, 'target': {'site': 'north', 'n': 2}}]
    model = build_graph(nodes, links, ViewConfig(node_group=field_getter('team')))
    assert model.ids == ((('n', 1), ('site', 'north')), (('n', 2), ('site', 'north')))
    assert len(model.relationships) == 1
    assert model.dropped == []
    assert model.domain == ((('name', 'blue'),), (('name', 'red'),))
    assert intern({'tags': ['a', 'b']}) == (('tags', ('a', 'b')),)
