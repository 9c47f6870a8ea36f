"""
Format configuration for pbxgraph.

A FormatConfig describes the document-level constants the serializer writes
and the identifier width the registry generates. Graphs capture the config
they were constructed with; the module-level default is only consulted when
no explicit config is passed.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
import logging

logger = logging.getLogger(__name__)


LAST_KNOWN_ARCHIVE_VERSION = "1"
DEFAULT_OBJECT_VERSION = "46"
LAST_KNOWN_OBJECT_VERSION = "77"


@dataclass(frozen=True)
class FormatConfig:
    """Document constants and layout switches used by the serializer."""
    archive_version: str = LAST_KNOWN_ARCHIVE_VERSION
    object_version: str = DEFAULT_OBJECT_VERSION
    header: str = "// !$*UTF8*$!"
    # Kinds written as a single `{key = value; }` line inside `objects`
    single_line_kinds: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"PBXBuildFile", "PBXFileReference"})
    )
    uuid_length: int = 24
    project_file_name: str = "project.pbxproj"


_default_config: Optional[FormatConfig] = None


def set_default_config(config: FormatConfig) -> None:
    """Set the config used by graphs created without an explicit one."""
    global _default_config
    _default_config = config
    logger.debug(f"Default format config set: {config}")


def get_default_config() -> FormatConfig:
    """Get the process default config (lazily created)."""
    global _default_config
    if _default_config is None:
        _default_config = FormatConfig()
    return _default_config


def reset_default_config() -> None:
    """Drop any custom default. For testing."""
    global _default_config
    _default_config = None
