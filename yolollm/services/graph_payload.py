"""
Extraction of knowledge-graph deltas from free-form LLM output.

Models often wrap the answer in prose, repeat example snippets from the
prompt, or emit several objects. Every balanced-brace candidate is tried in
order and the first one carrying a usable entity/relation payload wins.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..models.core import (ConversationContext, GraphEntity, GraphExtractionResult, GraphRejectionReason, GraphRelation,
                           GraphUpdate)
from ..utils.json_utils import iter_json_candidates, loads_relaxed
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

ENTITY_KEYS = ('entities', 'characters', 'entity')
RELATION_KEYS = ('relations', 'relationships')


class AmbiguousKeyError(Exception):
    """Raised when an object holds the same key in more than one casing."""
    pass


def extract_graph_update(text: Optional[str], context: ConversationContext) -> GraphExtractionResult:
    """Find the first JSON object in text that describes a graph delta.

    Args:
        text: Model output, already stripped of code fences
        context: Conversation identity used for the update's metadata

    Returns:
        GraphExtractionResult with the accepted update, or the rejection reason
    """
    if not text or not text.strip():
        return GraphExtractionResult(reason=GraphRejectionReason.EMPTY_RESPONSE)
    if '{' not in text:
        return GraphExtractionResult(reason=GraphRejectionReason.NO_JSON_OBJECT)

    saw_candidate = False
    saw_object = False
    for candidate in iter_json_candidates(text):
        saw_candidate = True
        try:
            root = loads_relaxed(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(root, dict):
            continue
        saw_object = True

        try:
            update = build_graph_update(root, context)
        except AmbiguousKeyError as e:
            logger.debug(f'Skipping graph candidate: {e}')
            continue
        if update is not None:
            return GraphExtractionResult(update=update)

    if saw_object:
        reason = GraphRejectionReason.MISSING_ARRAYS
    elif saw_candidate:
        reason = GraphRejectionReason.INVALID_JSON
    else:
        reason = GraphRejectionReason.TRUNCATED_JSON
    return GraphExtractionResult(reason=reason)


def build_graph_update(root: Dict[str, Any], context: ConversationContext) -> Optional[GraphUpdate]:
    """Build an update from one parsed object, or None when it carries no payload.

    Entity and relation arrays are looked up by known keys first. When neither
    is present by name, the array property with the most valid items is used.
    Meta always comes from context, never from the object.

    Raises:
        AmbiguousKeyError: If a known key appears in more than one casing
    """
    entity_key, entity_items = _find_array(root, ENTITY_KEYS)
    relation_key, relation_items = _find_array(root, RELATION_KEYS)
    found_by_name = entity_key is not None or relation_key is not None

    excluded = {key for key in (entity_key, relation_key) if key is not None}
    if entity_key is None:
        entity_key, entity_items = _best_array(root, is_valid_entity, excluded)
        if entity_key is not None:
            excluded.add(entity_key)
    if relation_key is None:
        relation_key, relation_items = _best_array(root, is_valid_relation, excluded)

    if not found_by_name and entity_key is None and relation_key is None:
        return None

    entities = [normalize_entity(item) for item in entity_items or [] if is_valid_entity(item)]
    relations = [normalize_relation(item) for item in relation_items or [] if is_valid_relation(item)]
    return GraphUpdate(meta=context, entities=entities, relations=relations)


def is_valid_entity(item: Any) -> bool:
    if isinstance(item, str):
        return bool(item.strip())
    if isinstance(item, dict):
        return _non_empty(item.get('name'))
    return False


def is_valid_relation(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    return _non_empty(item.get('source')) and _non_empty(item.get('target')) and _relation_label(item) is not None


def normalize_entity(item: Any) -> GraphEntity:
    if isinstance(item, str):
        return GraphEntity(name=item.strip())
    return GraphEntity(name=item['name'].strip(),
                       type=_optional_str(item.get('type')),
                       summary=_optional_str(item.get('summary')),
                       state=item.get('state') if isinstance(item.get('state'), dict) else None,
                       aliases=item.get('aliases') if isinstance(item.get('aliases'), list) else None)


def normalize_relation(item: Dict[str, Any]) -> GraphRelation:
    attributes = item.get('attributes')
    return GraphRelation(source=item['source'].strip(),
                         target=item['target'].strip(),
                         relation=_relation_label(item),
                         attributes=attributes if isinstance(attributes, dict) else None)


def _relation_label(item: Dict[str, Any]) -> Optional[str]:
    for key in ('relation', 'type'):
        if _non_empty(item.get(key)):
            return item[key].strip()
    return None


def _non_empty(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _get_case_insensitive(root: Dict[str, Any], key: str) -> Tuple[Optional[str], Any]:
    matches = [k for k in root if k.lower() == key]
    if len(matches) > 1:
        raise AmbiguousKeyError(f'key {key!r} appears as {matches}')
    if not matches:
        return None, None
    return matches[0], root[matches[0]]


def _find_array(root: Dict[str, Any], keys: Sequence[str]) -> Tuple[Optional[str], Optional[List[Any]]]:
    for key in keys:
        actual_key, value = _get_case_insensitive(root, key)
        if actual_key is not None and isinstance(value, list):
            return actual_key, value
    return None, None


def _best_array(root: Dict[str, Any], is_valid: Callable[[Any], bool],
                excluded: set) -> Tuple[Optional[str], Optional[List[Any]]]:
    best_key = None
    best_items = None
    best_count = 0
    for key, value in root.items():
        if key in excluded or not isinstance(value, list):
            continue
        count = sum(1 for item in value if is_valid(item))
        # Strictly greater keeps the first property on ties
        if count > best_count:
            best_key, best_items, best_count = key, value, count
    return best_key, best_items
