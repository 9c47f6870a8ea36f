"""
Graph nodes and reference-tracking lists.

A Node is a typed bag of attributes. It never mutates the graph's bookkeeping
itself: every assignment goes through ObjectGraph.set_attribute(), and every
mutation of a to-many list goes through the owning graph's link/unlink hooks,
so registration and the reverse-reference index stay in step with the
attribute values.
"""
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, TYPE_CHECKING
import copy

from pbxgraph.errors import InvalidArgument
from pbxgraph.schema import AttributeKind, KindSchema

if TYPE_CHECKING:
    from pbxgraph.graph import ObjectGraph


class Node:
    """One object of a project graph.

    Attributes are addressed by their plist names::

        group['name'] = 'Sources'
        group['children'].append(file_ref)
    """

    def __init__(self, graph: 'ObjectGraph', schema: KindSchema, uuid: str):
        self.graph = graph
        self.schema = schema
        self.uuid = uuid
        self._attributes: Dict[str, Any] = {}

    @property
    def isa(self) -> str:
        return self.schema.isa

    # ========== ATTRIBUTE ACCESS ==========

    def __getitem__(self, key: str) -> Any:
        return self._attributes.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.graph.set_attribute(self, key, value)

    def __delitem__(self, key: str) -> None:
        self.graph.set_attribute(self, key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._attributes

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def keys(self) -> List[str]:
        return list(self._attributes)

    def raw_items(self) -> List[Tuple[str, Any]]:
        """Attribute items as stored (references are Node objects)."""
        return list(self._attributes.items())

    def references(self) -> Iterator[Tuple[str, 'Node']]:
        """(attribute, target) for every outgoing reference edge."""
        for key, value in list(self._attributes.items()):
            spec = self.schema.attribute(key)
            if spec is None or value is None:
                continue
            if spec.kind is AttributeKind.TO_ONE:
                yield key, value
            elif spec.kind is AttributeKind.TO_MANY:
                for target in value:
                    yield key, target
            elif spec.kind is AttributeKind.REFERENCES_BY_KEYS:
                for entry in value:
                    for target in entry.values():
                        yield key, target

    # ========== GRAPH MEMBERSHIP ==========

    @property
    def is_registered(self) -> bool:
        return self.graph.find(self.uuid) is self

    @property
    def referrers(self) -> List['Node']:
        return self.graph.referrers(self)

    def remove_from_project(self) -> None:
        self.graph.remove(self)

    # ========== PRESENTATION ==========

    @property
    def explicit_name(self) -> Optional[str]:
        """Name taken from the display attributes; None for unnamed nodes."""
        for key in self.schema.display_attributes:
            value = self._attributes.get(key)
            if value is None:
                continue
            if isinstance(value, Node):
                return value.display_name
            if isinstance(value, str) and value:
                if key == 'path':
                    return value.rstrip('/').rsplit('/', 1)[-1]
                return value
        return None

    @property
    def display_name(self) -> str:
        name = self.explicit_name
        if name is not None:
            return name
        if self.schema.role_names:
            roles = dict(self.schema.role_names)
            for _, attribute in self.graph.incoming(self):
                if attribute in roles:
                    return roles[attribute]
        return self.schema.fallback_display_name

    @property
    def sort_value(self) -> str:
        if self.schema.sort_key:
            value = self._attributes.get(self.schema.sort_key)
            if value is not None:
                return str(value)
        return self.display_name

    def to_plist(self) -> Dict[str, Any]:
        """Attribute map with references rendered as uuid strings."""
        hash_ = {'isa': self.isa}
        for key, value in self._attributes.items():
            hash_[key] = plist_value(self.schema.attribute(key), value, lambda node: node.uuid)
        return hash_

    def to_tree_hash(self) -> Dict[str, Any]:
        from pbxgraph.serializer import node_tree_hash
        return node_tree_hash(self)

    def __str__(self) -> str:
        return self.display_name

    def __repr__(self) -> str:
        return f"<{self.isa} name=`{self.display_name}` UUID=`{self.uuid}`>"


def plist_value(spec, value: Any, render) -> Any:
    """Copy `value` for output, rendering each referenced node with `render`."""
    kind = spec.kind if spec is not None else AttributeKind.SIMPLE
    if kind is AttributeKind.TO_ONE:
        return render(value)
    if kind is AttributeKind.TO_MANY:
        return [render(target) for target in value]
    if kind is AttributeKind.REFERENCES_BY_KEYS:
        return [{key: render(target) for key, target in entry.items()} for entry in value]
    return copy.deepcopy(value)


class ReferenceList(list):
    """Ordered list of references that reports edge changes to its owner's graph.

    Adding an element to the list of a registered owner registers the element
    (and everything it references) before the edge is indexed; removing an
    element releases it, unregistering it once nothing rooted refers to it.
    A list that has been replaced by another value is detached (`owner` is
    None) and no longer reports changes.
    """

    def __init__(self, owner: Optional[Node], attribute: str, items: Iterable[Any] = ()):
        super().__init__()
        self.owner = owner
        self.attribute = attribute
        for item in items:
            self._check(item)
            list.append(self, item)

    # ---------- hooks ----------

    def _targets(self, item: Any) -> Iterable[Node]:
        return (item,)

    def _check(self, item: Any) -> None:
        if not isinstance(item, Node):
            raise InvalidArgument(
                f"`{self.attribute}` only holds objects, got {type(item).__name__}"
            )
        if self.owner is not None:
            self.owner.graph._check_same_graph(item)

    def _added(self, item: Any) -> None:
        if self.owner is not None:
            for target in self._targets(item):
                self.owner.graph._link(self.owner, self.attribute, target)

    def _removed(self, item: Any) -> None:
        if self.owner is not None:
            for target in self._targets(item):
                self.owner.graph._unlink(self.owner, self.attribute, target)

    # ---------- mutation ----------

    def append(self, item: Any) -> None:
        self._check(item)
        super().append(item)
        self._added(item)

    def extend(self, items: Iterable[Any]) -> None:
        for item in list(items):
            self.append(item)

    def __iadd__(self, items: Iterable[Any]) -> 'ReferenceList':
        self.extend(items)
        return self

    def __imul__(self, count: int) -> 'ReferenceList':
        raise TypeError("Reference lists cannot be repeated in place")

    def insert(self, index: int, item: Any) -> None:
        self._check(item)
        super().insert(index, item)
        self._added(item)

    def remove(self, item: Any) -> None:
        for index, existing in enumerate(self):
            if existing is item or (not isinstance(item, Node) and existing == item):
                del self[index]
                return
        raise ValueError(f"{item!r} is not in list")

    def pop(self, index: int = -1) -> Any:
        item = super().pop(index)
        self._removed(item)
        return item

    def clear(self) -> None:
        items = list(self)
        super().clear()
        for item in items:
            self._removed(item)

    def move(self, item: Any, new_index: int) -> None:
        """Reposition an element without touching the graph's bookkeeping."""
        for index, existing in enumerate(self):
            if existing is item:
                list.pop(self, index)
                list.insert(self, new_index, item)
                return
        raise ValueError(f"{item!r} is not in list")

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            new_items = list(value)
            for item in new_items:
                self._check(item)
            old_items = list.__getitem__(self, index)
            super().__setitem__(index, new_items)
            for item in new_items:
                self._added(item)
            for item in old_items:
                self._removed(item)
        else:
            self._check(value)
            old_item = list.__getitem__(self, index)
            super().__setitem__(index, value)
            self._added(value)
            self._removed(old_item)

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            old_items = list.__getitem__(self, index)
        else:
            old_items = [list.__getitem__(self, index)]
        super().__delitem__(index)
        for item in old_items:
            self._removed(item)


class ReferenceMapList(ReferenceList):
    """Ordered list of `{key: reference}` dictionaries (e.g. projectReferences).

    Entries are treated as immutable: replace an entry instead of mutating
    the dictionary in place.
    """

    def _targets(self, item: Any) -> Iterable[Node]:
        return tuple(item.values())

    def _check(self, item: Any) -> None:
        if not isinstance(item, dict) or not all(isinstance(v, Node) for v in item.values()):
            raise InvalidArgument(
                f"`{self.attribute}` only holds dictionaries of objects, got {item!r}"
            )
        if self.owner is not None:
            for target in item.values():
                self.owner.graph._check_same_graph(target)

    def remove(self, item: Any) -> None:
        for index, existing in enumerate(self):
            if existing is item or (
                existing.keys() == item.keys()
                and all(existing[key] is item[key] for key in existing)
            ):
                del self[index]
                return
        raise ValueError(f"{item!r} is not in list")
