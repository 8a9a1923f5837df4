"""
Tests for graph payload extraction from model output.
"""

import pytest

from yolollm.models.core import GraphRejectionReason
from yolollm.services.graph_payload import extract_graph_update, is_valid_entity, is_valid_relation


class TestRejections:

    @pytest.mark.parametrize('text', [None, '', '   \n '])
    def test_empty_response(self, text, context):
        assert extract_graph_update(text, context).reason == GraphRejectionReason.EMPTY_RESPONSE

    def test_no_json_object(self, context):
        result = extract_graph_update('I cannot find a graph here.', context)
        assert not result.accepted
        assert result.reason == GraphRejectionReason.NO_JSON_OBJECT

    def test_truncated_json(self, context):
        result = extract_graph_update('{"entities": ["Alice", "Bob"', context)
        assert result.reason == GraphRejectionReason.TRUNCATED_JSON

    def test_invalid_json(self, context):
        result = extract_graph_update('Here: {entities: Alice}', context)
        assert result.reason == GraphRejectionReason.INVALID_JSON

    def test_only_array_without_valid_items_is_missing_arrays(self, context):
        result = extract_graph_update('{"items": [1, 2, {"label": "x"}]}', context)
        assert result.reason == GraphRejectionReason.MISSING_ARRAYS

    def test_object_without_arrays_is_missing_arrays(self, context):
        assert extract_graph_update('{"answer": "none"}', context).reason == GraphRejectionReason.MISSING_ARRAYS

    def test_ambiguous_key_casing_is_skipped(self, context):
        text = '{"entities": ["Alice"], "Entities": ["Bob"]}'
        assert extract_graph_update(text, context).reason == GraphRejectionReason.MISSING_ARRAYS


class TestAcceptance:

    def test_empty_arrays_with_key_present_are_accepted(self, context):
        result = extract_graph_update('{"entities": [], "relations": []}', context)
        assert result.accepted
        assert result.update.entities == []
        assert result.update.relations == []

    def test_single_key_present_is_enough(self, context):
        result = extract_graph_update('{"relations": []}', context)
        assert result.accepted

    def test_string_and_object_entities(self, context):
        text = ('{"entities": ["Alice", "", {"name": "Tavern", "type": "place", "summary": "Warm", '
                '"state": {"open": true}, "aliases": ["The Inn"]}, {"type": "nameless"}]}')
        update = extract_graph_update(text, context).update
        assert [e.to_dict() for e in update.entities] == [
            {'name': 'Alice'},
            {'name': 'Tavern', 'type': 'place', 'summary': 'Warm', 'state': {'open': True}, 'aliases': ['The Inn']},
        ]

    def test_relation_label_prefers_relation_over_type(self, context):
        text = ('{"relations": [{"source": "Alice", "target": "Bob", "relation": "friend", "type": "social"}, '
                '{"source": "Bob", "target": "Tavern", "type": "owns", "attributes": {"since": "1999"}}, '
                '{"source": "Bob", "target": "", "relation": "x"}, '
                '{"source": "Bob", "target": "Carol", "relation": "  "}]}')
        relations = extract_graph_update(text, context).update.relations
        assert [r.to_dict() for r in relations] == [
            {'source': 'Alice', 'target': 'Bob', 'relation': 'friend'},
            {'source': 'Bob', 'target': 'Tavern', 'relation': 'owns', 'attributes': {'since': '1999'}},
        ]

    def test_keys_are_case_insensitive(self, context):
        update = extract_graph_update('{"Characters": ["Alice"], "RELATIONSHIPS": []}', context).update
        assert [e.name for e in update.entities] == ['Alice']

    def test_entity_key_precedence(self, context):
        update = extract_graph_update('{"entity": ["Zed"], "entities": ["Alice"]}', context).update
        assert [e.name for e in update.entities] == ['Alice']

    def test_meta_comes_from_context_not_model(self, context):
        text = '{"meta": {"chatId": "forged"}, "entities": ["Alice"]}'
        data = extract_graph_update(text, context).update.to_dict()
        assert data['meta'] == {
            'chatId': 'chat-1',
            'sessionId': 'session-1',
            'user': {'id': 'u1', 'name': 'Bob'},
            'characters': [
                {'id': 'c1', 'name': 'Alice', 'role': 'character', 'scenarioRole': 'innkeeper'},
                {'id': 'c2', 'name': 'Carol', 'role': 'character'},
            ]
        }

    def test_brace_inside_attribute_value(self, context):
        text = ('{"relations": [{"source": "A", "target": "B", "relation": "wrote", '
                '"attributes": {"note": "uses {braces} and } alone"}}]}')
        relation = extract_graph_update(text, context).update.relations[0]
        assert relation.attributes == {'note': 'uses {braces} and } alone'}


class TestFallbackAndOrdering:

    def test_best_array_fallback_picks_most_valid_items(self, context):
        text = '{"notes": [1, "Alice"], "people": [{"name": "Bob"}, {"name": "Carol"}, 3]}'
        update = extract_graph_update(text, context).update
        assert [e.name for e in update.entities] == ['Bob', 'Carol']

    def test_best_array_tie_goes_to_first_property(self, context):
        update = extract_graph_update('{"first": ["A"], "second": ["B"]}', context).update
        assert [e.name for e in update.entities] == ['A']

    def test_relations_found_by_heuristic(self, context):
        text = '{"nodes": [{"name": "A"}], "edges": [{"source": "A", "target": "B", "relation": "knows"}]}'
        update = extract_graph_update(text, context).update
        assert [e.name for e in update.entities] == ['A']
        assert [(r.source, r.target, r.relation) for r in update.relations] == [('A', 'B', 'knows')]

    def test_stray_example_fragment_is_skipped(self, context):
        text = ('Format example: {"name": "X"} or {}. '
                'Answer: {"entities": ["Alice"], "relations": []} '
                'Also: {"entities": ["Ignored"]}')
        update = extract_graph_update(text, context).update
        assert [e.name for e in update.entities] == ['Alice']

    def test_nested_payload_found_when_wrapper_has_none(self, context):
        text = '{"result": {"entities": ["Alice"]}}'
        update = extract_graph_update(text, context).update
        assert [e.name for e in update.entities] == ['Alice']

    def test_trailing_commas_and_comments_tolerated(self, context):
        text = '{\n  // graph\n  "entities": ["Alice",],\n}'
        assert extract_graph_update(text, context).accepted


class TestItemValidation:

    @pytest.mark.parametrize('item,expected', [('Alice', True), (' ', False), ({'name': 'A'}, True),
                                               ({'name': ''}, False), ({'name': 3}, False), (7, False), (None, False)])
    def test_entities(self, item, expected):
        assert is_valid_entity(item) is expected

    @pytest.mark.parametrize('item,expected', [
        ({'source': 'A', 'target': 'B', 'relation': 'r'}, True),
        ({'source': 'A', 'target': 'B', 'type': 'r'}, True),
        ({'source': 'A', 'target': 'B', 'relation': '', 'type': 'r'}, True),
        ({'source': 'A', 'target': 'B'}, False),
        ({'source': 'A', 'relation': 'r'}, False),
        ('A->B', False),
    ])
    def test_relations(self, item, expected):
        assert is_valid_relation(item) is expected
