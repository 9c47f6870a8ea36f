"""
Attribute schemas for object kinds.

The object graph, serializer and identity pass never embed knowledge of
specific kinds. Defaults, reference attributes, sort order, comment labels
and ownership all come from a KindSchema looked up by isa in an immutable
SchemaCatalog.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple
import copy

from pbxgraph.errors import InvalidArgument


class AttributeKind(Enum):
    """How an attribute's value relates to other nodes."""
    SIMPLE = "simple"                          # string, list of strings, or plain dict
    FOREIGN_KEY = "foreign_key"                # uuid string, possibly from another project
    TO_ONE = "to_one"                          # single reference
    TO_MANY = "to_many"                        # ordered list of references
    REFERENCES_BY_KEYS = "references_by_keys"  # ordered list of {key: reference}

    @property
    def is_reference(self) -> bool:
        return self in (AttributeKind.TO_ONE, AttributeKind.TO_MANY, AttributeKind.REFERENCES_BY_KEYS)


@dataclass(frozen=True)
class AttributeSpec:
    """One attribute of a kind.

    `default` is None when the attribute has no default and is left absent by
    `create()`. List and dict defaults are stored as tuples / read-only
    mappings and deep-copied into plain containers on fill.

    `uuid_map_keys` names nested dictionaries inside a SIMPLE dict value
    whose keys are local uuids (e.g. PBXProject.attributes.TargetAttributes).
    """
    name: str
    kind: AttributeKind = AttributeKind.SIMPLE
    default: Any = None
    uuid_map_keys: Tuple[str, ...] = ()

    def default_value(self) -> Any:
        """Fresh, mutable copy of the default."""
        if self.default is None:
            return None
        if isinstance(self.default, tuple):
            return [copy.deepcopy(item) for item in self.default]
        if isinstance(self.default, Mapping):
            return copy.deepcopy(dict(self.default))
        return self.default


@dataclass(frozen=True)
class KindSchema:
    """Everything the core knows about one isa."""
    isa: str
    attributes: Tuple[AttributeSpec, ...] = ()
    # Attribute used to order this kind inside sorted lists; None = display name
    sort_key: Optional[str] = None
    # List-valued attributes reordered by ObjectGraph.sort()
    sorted_attributes: Tuple[str, ...] = ()
    # Tried in order for the display name; reference attributes use the
    # target's display name, `path` uses its last component
    display_attributes: Tuple[str, ...] = ("name", "path")
    display_fallback: Optional[str] = None
    # (attribute, name) pairs: an unnamed node referenced through `attribute`
    # displays as `name`
    role_names: Tuple[Tuple[str, str], ...] = ()
    # When False, references to unnamed nodes carry no comment
    comment_unnamed: bool = True
    # Serializer comment; fields: {name}, {referrer_name}, {referrer_isa}
    comment_template: Optional[str] = None
    # Exists only to point at something else; removed along with its target
    owned_link: bool = False
    _by_name: Mapping[str, AttributeSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name = {spec.name: spec for spec in self.attributes}
        object.__setattr__(self, '_by_name', MappingProxyType(by_name))

    def attribute(self, name: str) -> Optional[AttributeSpec]:
        return self._by_name.get(name)

    def reference_attributes(self) -> Tuple[AttributeSpec, ...]:
        return tuple(spec for spec in self.attributes if spec.kind.is_reference)

    @property
    def fallback_display_name(self) -> str:
        if self.display_fallback is not None:
            return self.display_fallback
        for prefix in ("PBX", "XC"):
            if self.isa.startswith(prefix):
                return self.isa[len(prefix):]
        return self.isa


class SchemaCatalog(Mapping):
    """Immutable isa -> KindSchema lookup table."""

    def __init__(self, schemas: Iterable[KindSchema]):
        table: Dict[str, KindSchema] = {}
        for schema in schemas:
            if schema.isa in table:
                raise InvalidArgument(f"Duplicate schema for isa {schema.isa}")
            table[schema.isa] = schema
        self._table = MappingProxyType(table)

    def __getitem__(self, isa: str) -> KindSchema:
        return self._table[isa]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def schema_for(self, isa: str) -> KindSchema:
        """Schema for `isa`, raising InvalidArgument for unknown kinds."""
        try:
            return self._table[isa]
        except KeyError:
            raise InvalidArgument(f"Unknown isa `{isa}`") from None

    def __repr__(self) -> str:
        return f"SchemaCatalog({len(self._table)} kinds)"
