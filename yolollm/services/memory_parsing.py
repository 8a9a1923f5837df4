"""
Parsing of memory extraction responses into discrete facts.
"""

import json
import re
from typing import Iterable, List, Optional

from ..models.core import MemoryExtractResult
from ..utils.json_utils import loads_relaxed, strip_code_fences
from .graph_inbox import GRAPH_JSON_MARKER

MEMORIES_START_TAG = '<memories>'
MEMORIES_END_TAG = '</memories>'

_ORDINAL = re.compile(r'^\s*[+-]?\d+\s*$')


def parse_memory_extract_result(text: Optional[str]) -> List[MemoryExtractResult]:
    """Split a memory extraction response into facts.

    The first format that yields anything wins: a <memories> block, then a
    JSON array of strings or {"text": ...} objects, then one fact per line.
    Indices are reassigned from 0 over the surviving facts.

    Args:
        text: Raw LLM response

    Returns:
        Ordered list of MemoryExtractResult
    """
    if not text or not text.strip():
        return []

    text = strip_code_fences(text)

    for candidate_lines in (_memories_block_lines(text), _json_array_lines(text)):
        if candidate_lines is not None:
            facts = _normalize_all(candidate_lines)
            if facts:
                return _number(facts)

    return _number(_normalize_all(text.split('\n')))


def normalize_memory_line(line: str) -> Optional[str]:
    """Clean one candidate fact; None when it should be dropped.

    Strips a leading "N; " or "N: " ordinal and drops block tags and
    GRAPH_JSON carrier lines.
    """
    trimmed = line.strip()
    if not trimmed or _is_reserved(trimmed):
        return None

    for separator in (';', ':'):
        position = trimmed.find(separator)
        if position > 0 and _ORDINAL.match(trimmed[:position]):
            trimmed = trimmed[position + 1:].strip()
            break

    if not trimmed or _is_reserved(trimmed):
        return None
    return trimmed


def _is_reserved(line: str) -> bool:
    lowered = line.lower()
    if lowered in (MEMORIES_START_TAG, MEMORIES_END_TAG):
        return True
    return lowered.startswith(GRAPH_JSON_MARKER.lower())


def _memories_block_lines(text: str) -> Optional[List[str]]:
    lowered = text.lower()
    start = lowered.find(MEMORIES_START_TAG)
    if start < 0:
        return None
    inner_start = start + len(MEMORIES_START_TAG)
    end = lowered.find(MEMORIES_END_TAG, inner_start)
    if end < 0:
        return None
    return text[inner_start:end].split('\n')


def _json_array_lines(text: str) -> Optional[List[str]]:
    try:
        data = loads_relaxed(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, list):
        return None

    lines = []
    for element in data:
        if isinstance(element, str):
            lines.append(element)
        elif isinstance(element, dict) and isinstance(element.get('text'), str):
            lines.append(element['text'])
    return lines


def _normalize_all(lines: Iterable[str]) -> List[str]:
    return [fact for fact in (normalize_memory_line(line) for line in lines) if fact]


def _number(facts: List[str]) -> List[MemoryExtractResult]:
    return [MemoryExtractResult(index=i, text=fact) for i, fact in enumerate(facts)]
