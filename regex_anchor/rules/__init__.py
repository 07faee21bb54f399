"""Link rules: configuration is data, matching is code."""

from .load import (
    ConfigError,
    find_config_file,
    load_rules_file,
    load_workspace_rules,
    normalize_rules,
    rules_from_settings,
)
from .schema import DEFAULT_PREVIEW, DestinationDescriptor, PreviewConfig, Rule, SourceDescriptor

__all__ = [
    "ConfigError",
    "DEFAULT_PREVIEW",
    "DestinationDescriptor",
    "PreviewConfig",
    "Rule",
    "SourceDescriptor",
    "find_config_file",
    "load_rules_file",
    "load_workspace_rules",
    "normalize_rules",
    "rules_from_settings",
]
