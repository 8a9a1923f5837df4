"""
Settings resolution across the module-wide and per-service tiers.

Every configurable field is resolved the same way: an explicit value in the
service tier wins, then the module tier, then the field's hard default. A
value counts as explicit when its key is present, so a service may override a
number to 0 or a prompt path to nothing.
"""

import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..models.core import EffectiveSettings
from ..utils.config import MODULE_ENV_PREFIX
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

PROMPTS_DIR = 'Resources/Prompts/Default/en/YoloLLM'

_TRUE_STRINGS = {'true', '1', 'yes', 'on'}
_FALSE_STRINGS = {'false', '0', 'no', 'off'}


class SettingsError(Exception):
    """Raised when a configured value is missing or cannot be used."""
    pass


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f'not a boolean: {value!r}')


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f'not an integer: {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f'not an integer: {value!r}')
        return int(value)
    if isinstance(value, str):
        value = value.strip()
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f'not a number: {value!r}')
    if isinstance(value, str):
        value = value.strip()
    return float(value)


def _to_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f'not a string: {value!r}')
    return value.strip()


@dataclass(frozen=True)
class SettingsField:
    """Declaration of one configurable field."""
    name: str  # external name, shared by both tiers
    attr: str  # EffectiveSettings attribute
    converter: Callable[[Any], Any]
    default: Any = None
    optional: bool = False  # None or blank resolves to None
    module_only: bool = False

    @property
    def env_suffix(self) -> str:
        return re.sub(r'(?<!^)(?=[A-Z])', '_', self.name).upper()


SETTINGS_FIELDS: Tuple[SettingsField, ...] = (
    SettingsField('ApiKey', 'api_key', _to_str, default='', module_only=True),
    SettingsField('BaseUrl', 'base_url', _to_str, default='https://api.openai.com/v1/chat/completions', module_only=True),
    SettingsField('Model', 'model', _to_str, default='gpt-4o-mini'),
    SettingsField('Temperature', 'temperature', _to_float, default=0.7),
    SettingsField('MaxNewTokens', 'max_new_tokens', _to_int, default=512),
    SettingsField('MaxWindowTokens', 'max_window_tokens', _to_int, default=8192),
    SettingsField('MaxMemoryTokens', 'max_memory_tokens', _to_int, default=2048),
    SettingsField('MaxSummaryTokens', 'max_summary_tokens', _to_int, default=512),
    SettingsField('SummarizationDigestRatio', 'summarization_digest_ratio', _to_float, default=0.35),
    SettingsField('SummarizationTriggerMessagesBuffer', 'summarization_trigger_messages_buffer', _to_float, default=2.0),
    SettingsField('KeepLastMessages', 'keep_last_messages', _to_int, default=4),
    SettingsField('ReplySystemPromptPath', 'reply_system_prompt_path', _to_str,
                  default=f'{PROMPTS_DIR}/ReplySystemAddon.scriban', optional=True),
    SettingsField('SummaryPromptPath', 'summary_prompt_path', _to_str,
                  default=f'{PROMPTS_DIR}/SummarizationAddon.scriban', optional=True),
    SettingsField('MemoryExtractionPromptPath', 'memory_extraction_prompt_path', _to_str,
                  default=f'{PROMPTS_DIR}/MemoryExtractionAddon.scriban', optional=True),
    SettingsField('EnableGraphExtraction', 'enable_graph_extraction', _to_bool, default=True),
    SettingsField('GraphExtractionPromptPath', 'graph_extraction_prompt_path', _to_str,
                  default=f'{PROMPTS_DIR}/GraphExtraction.graph.scriban', optional=True),
    SettingsField('LogLifecycleEvents', 'log_lifecycle_events', _to_bool, default=True),
)

FIELDS_BY_NAME: Dict[str, SettingsField] = {f.name: f for f in SETTINGS_FIELDS}

# Changing any of these requires the service to be initialized again
MODULE_FIELDS_REQUIRING_RELOAD: Tuple[str, ...] = (
    'ApiKey', 'BaseUrl', 'Model', 'Temperature', 'MaxNewTokens', 'MaxWindowTokens', 'MaxMemoryTokens',
    'MaxSummaryTokens', 'EnableGraphExtraction', 'GraphExtractionPromptPath', 'ReplySystemPromptPath',
    'SummaryPromptPath', 'MemoryExtractionPromptPath', 'LogLifecycleEvents'
)

SERVICE_FIELDS_REQUIRING_RELOAD: Tuple[str, ...] = tuple(f.name for f in SETTINGS_FIELDS if not f.module_only)


def coerce_value(field: SettingsField, value: Any) -> Any:
    """Convert a raw tier value to the field's type.

    Raises:
        SettingsError: If the value cannot be converted
    """
    if value is None or (field.optional and isinstance(value, str) and not value.strip()):
        if field.optional:
            return None
        raise SettingsError(f'Setting {field.name} is set but empty')
    try:
        return field.converter(value)
    except (TypeError, ValueError) as e:
        raise SettingsError(f'Invalid value for setting {field.name}: {e}')


def resolve_field(field: SettingsField, module_settings: Mapping[str, Any], service_settings: Mapping[str, Any]) -> Any:
    """Resolve one field: service tier, then module tier, then default."""
    if not field.module_only and field.name in service_settings:
        return coerce_value(field, service_settings[field.name])
    if field.name in module_settings:
        return coerce_value(field, module_settings[field.name])
    return field.default


def resolve_settings(module_settings: Mapping[str, Any],
                     service_settings: Optional[Mapping[str, Any]] = None,
                     decrypt: Optional[Callable[[str], str]] = None) -> EffectiveSettings:
    """Merge both tiers into one immutable settings record.

    Pure function: no network or file access.

    Args:
        module_settings: Module-wide values keyed by field name
        service_settings: Per-service overrides keyed by field name
        decrypt: Unwraps the stored API key; failures fall back to the raw value

    Returns:
        EffectiveSettings for one service instance

    Raises:
        SettingsError: If a present value cannot be converted
    """
    service_settings = service_settings or {}
    values = {field.attr: resolve_field(field, module_settings, service_settings) for field in SETTINGS_FIELDS}
    values['api_key'] = _try_decrypt(decrypt, values['api_key'])
    return EffectiveSettings(**values)


def _try_decrypt(decrypt: Optional[Callable[[str], str]], value: str) -> str:
    if not value or decrypt is None:
        return value
    try:
        return decrypt(value)
    except Exception as e:
        # Stored key was not encrypted with the local key; use it as-is
        logger.debug(f'API key decryption failed, using stored value: {e}')
        return value


def load_module_settings(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect module-wide settings from YOLOLLM_* environment variables.

    Only variables that are set end up in the result, so unset ones fall
    through to the field defaults.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Dict keyed by field name (e.g. 'Temperature')
    """
    environ = os.environ if environ is None else environ
    settings = {}
    for field in SETTINGS_FIELDS:
        env_name = MODULE_ENV_PREFIX + field.env_suffix
        if env_name in environ:
            settings[field.name] = environ[env_name]
    return settings
