"""
Tests for fence stripping, candidate scanning and relaxed JSON parsing.
"""

import json

import pytest

from yolollm.utils.json_utils import iter_json_candidates, loads_relaxed, strip_code_fences


class TestStripCodeFences:

    def test_removes_fence_with_language_tag(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_removes_fence_without_language_tag(self):
        assert strip_code_fences('  ```\nhello\nworld\n```  ') == 'hello\nworld'

    def test_uses_last_closing_fence(self):
        text = '```markdown\nuse ``` for code\n```'
        assert strip_code_fences(text) == 'use ``` for code'

    def test_unclosed_fence_returns_original(self):
        text = '```json\n{"a": 1}'
        assert strip_code_fences(text) == text

    def test_single_line_fence_returns_original(self):
        assert strip_code_fences('```json```') == '```json```'

    def test_plain_text_returned_unchanged(self):
        text = '  plain answer  '
        assert strip_code_fences(text) == text

    @pytest.mark.parametrize('text', [
        '```json\n{"entities": []}\n```',
        'no fences at all',
        '```\nunterminated',
        '\n\n```python\nprint(1)\n```\n',
        '',
    ])
    def test_idempotent(self, text):
        once = strip_code_fences(text)
        assert strip_code_fences(once) == once


class TestIterJsonCandidates:

    def test_ignores_brace_inside_string(self):
        assert list(iter_json_candidates('prefix {"a":"x}y"} suffix')) == ['{"a":"x}y"}']

    def test_ignores_open_brace_inside_string(self):
        candidates = list(iter_json_candidates('{"a": "{not an object"}'))
        assert candidates == ['{"a": "{not an object"}']

    def test_escaped_quote_does_not_end_string(self):
        text = r'{"a": "say \"}\" loudly"}'
        assert list(iter_json_candidates(text)) == [text]

    def test_yields_nested_objects_after_outer(self):
        text = 'x {"outer": {"inner": 1}} y'
        assert list(iter_json_candidates(text)) == ['{"outer": {"inner": 1}}', '{"inner": 1}']

    def test_multiple_top_level_objects_in_order(self):
        text = 'Example: {"a": 1}. Answer: {"b": 2}'
        assert list(iter_json_candidates(text)) == ['{"a": 1}', '{"b": 2}']

    def test_unmatched_brace_yields_nothing_for_that_start(self):
        assert list(iter_json_candidates('{ "a": 1, {"b": 2}')) == ['{"b": 2}']

    def test_no_braces(self):
        assert list(iter_json_candidates('I cannot find a graph here.')) == []

    def test_stray_quote_in_prose_ends_at_line_break(self):
        text = 'The 5" screen is cracked.\n{"entities": ["Alice"]}'
        assert list(iter_json_candidates(text)) == ['{"entities": ["Alice"]}']

    def test_stray_quote_hides_braces_on_same_line(self):
        assert list(iter_json_candidates('The 5" screen. {"a": 1}')) == []

    def test_candidates_are_balanced(self):
        text = 'a {"x": [1, {"y": "}"}]} b {"z": {}} c {'
        for candidate in iter_json_candidates(text):
            json.loads(candidate)

    def test_is_lazy(self):
        scanner = iter_json_candidates('{"a": 1} {"b": 2}')
        assert next(scanner) == '{"a": 1}'
        assert next(scanner) == '{"b": 2}'
        with pytest.raises(StopIteration):
            next(scanner)


class TestLoadsRelaxed:

    def test_plain_json(self):
        assert loads_relaxed('{"a": [1, 2]}') == {'a': [1, 2]}

    def test_trailing_commas(self):
        assert loads_relaxed('{"a": [1, 2,], "b": 3,\n}') == {'a': [1, 2], 'b': 3}

    def test_comments(self):
        text = '{\n  // people\n  "a": 1, /* block */ "b": 2\n}'
        assert loads_relaxed(text) == {'a': 1, 'b': 2}

    def test_comment_markers_inside_strings_are_kept(self):
        assert loads_relaxed('{"url": "http://x/*y*/", "t": "a,]"}') == {'url': 'http://x/*y*/', 't': 'a,]'}

    def test_invalid_json_still_raises(self):
        with pytest.raises(json.JSONDecodeError):
            loads_relaxed("{'single': 'quotes'}")
