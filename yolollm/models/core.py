"""
Core data models for text generation, memory extraction and graph updates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ROLE_SYSTEM = 'system'
ROLE_USER = 'user'
ROLE_ASSISTANT = 'assistant'


@dataclass
class ChatMessage:
    """One role-tagged message sent to the LLM."""
    role: str  # system, user or assistant
    content: str
    name: Optional[str] = None  # speaker shown in transcripts, never sent on the wire


@dataclass
class TextGenRequest:
    """A completion request before it is turned into an HTTP payload."""
    messages: List[ChatMessage]
    max_new_tokens: int = 0  # 0 means "use the configured reply cap"
    stop: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EffectiveSettings:
    """Resolved settings for one service instance.

    Built once at initialization from the module and service tiers and never
    mutated afterwards.
    """
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_new_tokens: int
    max_window_tokens: int
    max_memory_tokens: int
    max_summary_tokens: int
    summarization_digest_ratio: float
    summarization_trigger_messages_buffer: float
    keep_last_messages: int
    reply_system_prompt_path: Optional[str]
    summary_prompt_path: Optional[str]
    memory_extraction_prompt_path: Optional[str]
    enable_graph_extraction: bool
    graph_extraction_prompt_path: Optional[str]
    log_lifecycle_events: bool


@dataclass(frozen=True)
class MemoryExtractResult:
    """One fact pulled from a memory extraction response.

    The index is the emission order, not a stable identifier.
    """
    index: int
    text: str


@dataclass
class MemoryMergeResult:
    """Outcome of merging memories. Merging is not supported, so it is always empty."""
    updated: List[MemoryExtractResult] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)

    @classmethod
    def empty(cls) -> 'MemoryMergeResult':
        return cls()


@dataclass
class GenerateReplyConstraints:
    """Token limits handed back to the host before it builds a reply prompt."""
    max_input_tokens: int
    max_new_tokens: int
    max_memory_tokens_ratio: float


@dataclass
class Participant:
    """A user or character taking part in a conversation."""
    id: str
    name: str
    role: str = 'character'
    scenario_role: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'id': self.id, 'name': self.name, 'role': self.role}
        if self.scenario_role:
            data['scenarioRole'] = self.scenario_role
        return data


@dataclass
class ConversationContext:
    """Conversation identity known to the host at call time, independent of model output."""
    chat_id: str
    session_id: str
    user: Participant
    characters: List[Participant] = field(default_factory=list)

    def participant_names(self) -> List[str]:
        """Distinct participant names in order of appearance."""
        names = []
        for participant in [self.user, *self.characters]:
            name = (participant.name or '').strip()
            if name and name not in names:
                names.append(name)
        return names


@dataclass
class GraphEntity:
    """A node in the knowledge graph delta."""
    name: str
    type: Optional[str] = None
    summary: Optional[str] = None
    state: Optional[Dict[str, Any]] = None
    aliases: Optional[List[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name}
        if self.type is not None:
            data['type'] = self.type
        if self.summary is not None:
            data['summary'] = self.summary
        if self.state is not None:
            data['state'] = self.state
        if self.aliases is not None:
            data['aliases'] = self.aliases
        return data


@dataclass
class GraphRelation:
    """A labelled edge between two named entities."""
    source: str
    target: str
    relation: str
    attributes: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'source': self.source, 'target': self.target, 'relation': self.relation}
        if self.attributes is not None:
            data['attributes'] = self.attributes
        return data


@dataclass
class GraphUpdate:
    """One incremental graph payload scoped by host-provided metadata."""
    meta: ConversationContext
    entities: List[GraphEntity] = field(default_factory=list)
    relations: List[GraphRelation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'meta': {
                'chatId': self.meta.chat_id,
                'sessionId': self.meta.session_id,
                'user': {
                    'id': self.meta.user.id,
                    'name': self.meta.user.name
                },
                'characters': [c.to_dict() for c in self.meta.characters]
            },
            'entities': [e.to_dict() for e in self.entities],
            'relations': [r.to_dict() for r in self.relations]
        }


class GraphRejectionReason(str, Enum):
    """Why a response did not yield a graph update."""
    EMPTY_RESPONSE = 'empty_response'
    NO_JSON_OBJECT = 'no_json_object'
    TRUNCATED_JSON = 'truncated_json'
    INVALID_JSON = 'invalid_json'
    MISSING_ARRAYS = 'missing_arrays'


@dataclass
class GraphExtractionResult:
    """Either an accepted update or the reason nothing was accepted."""
    update: Optional[GraphUpdate] = None
    reason: Optional[GraphRejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.update is not None
