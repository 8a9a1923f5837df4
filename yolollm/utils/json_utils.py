"""
JSON utilities for cleaning LLM responses.
"""

import json
from typing import Any, Iterator

FENCE = '```'


def strip_code_fences(response: str) -> str:
    """Remove a Markdown code fence wrapped around an LLM response.

    The opening fence line (which may carry a language tag such as ``json``)
    and the last closing fence are removed. Text without a complete fence is
    returned unchanged.

    Args:
        response: Raw LLM response

    Returns:
        Interior of the fence, trimmed, or the original response
    """
    trimmed = response.strip()
    if not trimmed.startswith(FENCE):
        return response

    first_newline = trimmed.find('\n')
    if first_newline < 0:
        return response

    without_header = trimmed[first_newline + 1:]
    end_fence = without_header.rfind(FENCE)
    if end_fence < 0:
        return response

    return without_header[:end_fence].strip()


def iter_json_candidates(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` span in text, outermost first.

    Braces inside double-quoted strings are ignored, both while looking for an
    opening brace and while matching it. An opening brace without a matching
    close yields nothing and scanning resumes right after it, so objects
    nested inside a yielded candidate are yielded too.

    JSON strings cannot span lines, so a quote left open in prose (e.g.
    `a 5" screen`) only hides braces until the end of its line.

    Args:
        text: Arbitrary model output

    Yields:
        Candidate substrings in order of their opening brace
    """
    in_string = False
    escaped = False
    for start, char in enumerate(text):
        if in_string:
            if char == '\n':
                in_string = False
                escaped = False
            elif escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            end = _match_brace(text, start)
            if end is not None:
                yield text[start:end + 1]


def _match_brace(text: str, start: int):
    """Return the index of the brace closing the one at start, or None."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return i
    return None


def loads_relaxed(text: str) -> Any:
    """Parse JSON while tolerating comments and trailing commas.

    Anything else that is not valid JSON still raises.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON after cleanup
    """
    return json.loads(_drop_trailing_commas(_strip_comments(text)))


def _strip_comments(text: str) -> str:
    out = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == '\\' and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith('//', i):
            newline = text.find('\n', i)
            i = length if newline < 0 else newline
        elif text.startswith('/*', i):
            close = text.find('*/', i + 2)
            # An unterminated block comment is left for json.loads to reject
            if close < 0:
                out.append(text[i:])
                break
            out.append(' ')
            i = close + 2
        else:
            out.append(char)
            i += 1
    return ''.join(out)


def _drop_trailing_commas(text: str) -> str:
    out = []
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == ',':
            j = i + 1
            while j < len(text) and text[j].isspace():
                j += 1
            if j < len(text) and text[j] in '}]':
                continue
        out.append(char)
    return ''.join(out)
