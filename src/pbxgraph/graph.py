"""
ObjectGraph: identity- and reference-tracking object graph.

The graph owns one IdentityRegistry, the uuid -> node map and the reverse
reference index. The node map holds exactly the nodes reachable from the root
object; everything else (freshly created nodes, subtrees that were detached)
lives outside the map until something registered references it again.

Reverse index:
    _referrers maps a target uuid to a Counter of (referrer uuid, attribute)
    pairs. It only records edges whose referrer is registered, and it is
    updated edge by edge as attributes change. It never owns anything.

Release:
    When an edge is dropped the target is checked by walking the reverse
    index upward. If the walk cannot reach the root object, every node it
    visited is unreachable (nothing rooted can reach them), so all of them are
    unregistered together and their own outgoing edges are released in turn.
    This collects detached cycles as well as plain subtrees.

Thread safety: Not thread-safe. Separate graphs share no state.
"""
from collections import Counter, deque
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union
import logging

from pbxgraph.catalog import default_catalog
from pbxgraph.config import FormatConfig, get_default_config
from pbxgraph.errors import InvalidArgument
from pbxgraph.identity import IdentityRegistry, compute_predictable_uuids
from pbxgraph.node import Node, ReferenceList, ReferenceMapList
from pbxgraph.schema import AttributeKind, SchemaCatalog

logger = logging.getLogger(__name__)


class ObjectGraph:
    """Graph of typed nodes rooted at a single root object.

    Args:
        catalog: Kind schemas; defaults to the Xcode catalog.
        config: Format constants; defaults to the process default config.
        seed: Seed for this graph's identifier generator.
        name: Project name written in comments that refer to the root object.
    """

    def __init__(
        self,
        catalog: Optional[SchemaCatalog] = None,
        config: Optional[FormatConfig] = None,
        seed: Optional[int] = None,
        name: Optional[str] = None,
    ):
        self._name = name
        self.catalog = catalog if catalog is not None else default_catalog()
        self.config = config if config is not None else get_default_config()
        self._identity = IdentityRegistry(seed, self.config.uuid_length)
        self._objects: Dict[str, Node] = {}
        self._referrers: Dict[str, Counter] = {}
        self._root: Optional[Node] = None

        self.archive_version: str = self.config.archive_version
        self.object_version: str = self.config.object_version
        self.classes: Dict[str, Any] = {}

    @property
    def name(self) -> Optional[str]:
        return self._name

    # ========== IDENTITY ==========

    @property
    def identity(self) -> IdentityRegistry:
        return self._identity

    @property
    def generated_uuids(self) -> Set[str]:
        """Every identifier generated or reserved, attached or not."""
        return self._identity.known

    def generate_uuid(self) -> str:
        return self._identity.generate_uuid()

    def generate_available_uuid_list(self, count: int = 100) -> List[str]:
        return self._identity.generate_unique_batch(count)

    def predictabilize_uuids(self) -> Dict[str, str]:
        """Replace every uuid with one derived from the node's path from root.

        Returns:
            Mapping of old uuid -> new uuid.
        """
        mapping = compute_predictable_uuids(self)
        self._rekey(mapping)
        logger.info(f"Predictabilized {len(mapping)} uuids")
        return mapping

    def _rekey(self, mapping: Dict[str, str]) -> None:
        # Values first, while `mapping` keys still match the stored uuids
        for node in self._objects.values():
            for spec in node.schema.attributes:
                value = node._attributes.get(spec.name)
                if value is None:
                    continue
                if spec.kind is AttributeKind.FOREIGN_KEY and value in mapping:
                    node._attributes[spec.name] = mapping[value]
                elif spec.uuid_map_keys and isinstance(value, dict):
                    for key in spec.uuid_map_keys:
                        if isinstance(value.get(key), dict):
                            value[key] = _remap_uuids(value[key], mapping)

        objects: Dict[str, Node] = {}
        for old_uuid, node in self._objects.items():
            node.uuid = mapping.get(old_uuid, old_uuid)
            objects[node.uuid] = node
            self._identity.reserve(node.uuid)
        self._objects = objects

        referrers: Dict[str, Counter] = {}
        for target_uuid, counter in self._referrers.items():
            referrers[mapping.get(target_uuid, target_uuid)] = Counter({
                (mapping.get(referrer_uuid, referrer_uuid), attribute): count
                for (referrer_uuid, attribute), count in counter.items()
            })
        self._referrers = referrers

    # ========== CREATION ==========

    def create(self, isa: str) -> Node:
        """New detached node with a reserved uuid and schema defaults."""
        schema = self.catalog.schema_for(isa)
        node = Node(self, schema, self._identity.generate_uuid())
        for spec in schema.attributes:
            value = spec.default_value()
            if value is None:
                continue
            if spec.kind is AttributeKind.TO_MANY:
                value = ReferenceList(node, spec.name, value)
            elif spec.kind is AttributeKind.REFERENCES_BY_KEYS:
                value = ReferenceMapList(node, spec.name, value)
            node._attributes[spec.name] = value
        logger.debug(f"Created {isa} {node.uuid}")
        return node

    def _adopt(self, uuid: str, isa: str) -> Node:
        """Detached node under an existing uuid, without defaults (used on load)."""
        node = Node(self, self.catalog.schema_for(isa), uuid)
        self._identity.reserve(uuid)
        return node

    @property
    def root_object(self) -> Optional[Node]:
        return self._root

    def set_root(self, node: Node) -> None:
        """Install the root object and register everything it reaches."""
        self._check_same_graph(node)
        if self._root is not None:
            raise InvalidArgument("The graph already has a root object")
        self._root = node
        self._register(node)

    # ========== MUTATION ==========

    def set_attribute(self, node: Node, key: str, value: Any) -> None:
        """Assign `value` to `node[key]`; None unsets the attribute.

        New targets are registered before the edge is indexed; replaced
        targets are released afterwards, so moving a node between attributes
        never unregisters it.
        """
        self._check_same_graph(node)
        spec = node.schema.attribute(key)
        if spec is None:
            raise InvalidArgument(f"`{node.isa}` has no attribute `{key}`")
        old = node._attributes.get(key)

        if spec.kind is AttributeKind.TO_ONE:
            if value is not None:
                if not isinstance(value, Node):
                    raise InvalidArgument(f"`{node.isa}.{key}` holds an object, got {type(value).__name__}")
                self._check_same_graph(value)
                node._attributes[key] = value
                self._link(node, key, value)
            else:
                node._attributes.pop(key, None)
            if old is not None:
                self._unlink(node, key, old)
            return

        if spec.kind in (AttributeKind.TO_MANY, AttributeKind.REFERENCES_BY_KEYS):
            if value is not None:
                list_type = ReferenceList if spec.kind is AttributeKind.TO_MANY else ReferenceMapList
                new_list = list_type(node, key, value)
                node._attributes[key] = new_list
                for item in new_list:
                    new_list._added(item)
            else:
                node._attributes.pop(key, None)
            if old is not None:
                old.owner = None
                for item in old:
                    for target in old._targets(item):
                        self._unlink(node, key, target)
            return

        if isinstance(value, Node):
            raise InvalidArgument(f"`{node.isa}.{key}` is not a reference attribute")
        if value is None:
            node._attributes.pop(key, None)
        else:
            node._attributes[key] = value

    def _check_same_graph(self, node: Node) -> None:
        if node.graph is not self:
            raise InvalidArgument(f"{node!r} belongs to another graph")

    def _is_registered(self, node: Node) -> bool:
        return self._objects.get(node.uuid) is node

    def _link(self, owner: Node, attribute: str, target: Node) -> None:
        if not self._is_registered(owner):
            return
        self._register(target)
        self._index_add(target.uuid, owner.uuid, attribute)

    def _unlink(self, owner: Node, attribute: str, target: Node) -> None:
        if not self._is_registered(owner):
            return
        self._index_discard(target.uuid, owner.uuid, attribute)
        self._release(target)

    def _register(self, node: Node) -> None:
        """Register `node` and, transitively, everything it references."""
        stack = [node]
        while stack:
            current = stack.pop()
            existing = self._objects.get(current.uuid)
            if existing is current:
                continue
            if existing is not None:
                raise InvalidArgument(f"Duplicate uuid {current.uuid}: {existing!r} and {current!r}")
            self._check_same_graph(current)
            self._objects[current.uuid] = current
            self._identity.reserve(current.uuid)
            logger.debug(f"Registered {current.isa} {current.uuid}")

            pending = []
            for attribute, target in current.references():
                self._index_add(target.uuid, current.uuid, attribute)
                if not self._is_registered(target):
                    pending.append(target)
            stack.extend(reversed(pending))

    def _index_add(self, target_uuid: str, referrer_uuid: str, attribute: str) -> None:
        self._referrers.setdefault(target_uuid, Counter())[(referrer_uuid, attribute)] += 1

    def _index_discard(self, target_uuid: str, referrer_uuid: str, attribute: str) -> None:
        counter = self._referrers.get(target_uuid)
        if not counter:
            return
        key = (referrer_uuid, attribute)
        if counter[key] <= 1:
            counter.pop(key, None)
        else:
            counter[key] -= 1
        if not counter:
            del self._referrers[target_uuid]

    def _unrooted_closure(self, node: Node) -> Optional[Set[str]]:
        """None if root reaches `node`, else every registered node that reaches it."""
        root_uuid = self._root.uuid if self._root is not None else None
        if node.uuid == root_uuid:
            return None
        seen = {node.uuid}
        queue = deque([node.uuid])
        while queue:
            uuid = queue.popleft()
            for referrer_uuid, _attribute in self._referrers.get(uuid, ()):
                if referrer_uuid == root_uuid:
                    return None
                if referrer_uuid not in seen:
                    seen.add(referrer_uuid)
                    queue.append(referrer_uuid)
        return seen

    def _release(self, *targets: Node) -> None:
        pending = list(targets)
        while pending:
            target = pending.pop()
            if target is self._root or not self._is_registered(target):
                continue
            closure = self._unrooted_closure(target)
            if closure is None:
                continue
            nodes = [self._objects[uuid] for uuid in closure if uuid in self._objects]
            pending.extend(self._unregister_nodes(nodes))

    def _unregister_nodes(self, nodes: List[Node]) -> List[Node]:
        """Drop `nodes` from the map and index; returns targets to release."""
        for node in nodes:
            del self._objects[node.uuid]
            logger.debug(f"Unregistered {node.isa} {node.uuid}")
        for node in nodes:
            self._referrers.pop(node.uuid, None)
        released = []
        for node in nodes:
            for attribute, target in node.references():
                self._index_discard(target.uuid, node.uuid, attribute)
                released.append(target)
        return released

    # ========== REMOVAL ==========

    def remove(self, node: Node) -> None:
        """Remove a registered node from the graph.

        Every incoming edge is stripped from its referrer. Referrers whose kind
        is an owned link (e.g. a build file or a container proxy) are removed
        recursively instead, since they only exist to point at `node`.
        """
        self._check_same_graph(node)
        if node is self._root:
            raise InvalidArgument("The root object cannot be removed")
        if not self._is_registered(node):
            raise InvalidArgument(f"{node!r} is not part of the graph")

        incoming = [
            (self._objects[referrer_uuid], attribute)
            for referrer_uuid, attribute in self._referrers.get(node.uuid, Counter())
            if referrer_uuid in self._objects
        ]
        cascaded = 0
        for referrer, attribute in incoming:
            if referrer is node:
                continue
            if referrer.schema.owned_link:
                if self._is_registered(referrer):
                    cascaded += 1
                    self.remove(referrer)
            else:
                self._strip(referrer, attribute, node)

        if self._is_registered(node):
            self._release(*self._unregister_nodes([node]))
        if cascaded:
            logger.info(f"Removed {node.isa} {node.uuid} and {cascaded} owned link(s)")
        else:
            logger.debug(f"Removed {node.isa} {node.uuid}")

    def _strip(self, referrer: Node, attribute: str, target: Node) -> None:
        spec = referrer.schema.attribute(attribute)
        value = referrer.get(attribute)
        if spec is None or value is None:
            return
        if spec.kind is AttributeKind.TO_ONE:
            if value is target:
                self.set_attribute(referrer, attribute, None)
        elif spec.kind is AttributeKind.TO_MANY:
            for index in reversed(range(len(value))):
                if value[index] is target:
                    del value[index]
        elif spec.kind is AttributeKind.REFERENCES_BY_KEYS:
            for index in reversed(range(len(value))):
                if any(item is target for item in value[index].values()):
                    del value[index]

    # ========== QUERIES ==========

    @property
    def objects(self) -> List[Node]:
        return list(self._objects.values())

    @property
    def uuids(self) -> List[str]:
        return list(self._objects)

    @property
    def objects_by_uuid(self) -> Mapping[str, Node]:
        return MappingProxyType(self._objects)

    def find(self, key: Union[str, Callable[[Node], bool]]) -> Optional[Node]:
        """Node by uuid, or the first node matching a predicate; None if absent."""
        if callable(key):
            return next((node for node in self._objects.values() if key(node)), None)
        return self._objects.get(key)

    def select(self, predicate: Callable[[Node], bool]) -> List[Node]:
        return [node for node in self._objects.values() if predicate(node)]

    def referrers(self, node: Node) -> List[Node]:
        """Registered nodes referencing `node`, in index order."""
        result = []
        for referrer_uuid, _attribute in self._referrers.get(node.uuid, ()):
            referrer = self._objects.get(referrer_uuid)
            if referrer is not None and referrer not in result:
                result.append(referrer)
        return result

    def incoming(self, node: Node) -> List[Tuple[Node, str]]:
        """(referrer, attribute) edges into `node`, ordered by referrer uuid."""
        edges = []
        for referrer_uuid, attribute in sorted(self._referrers.get(node.uuid, ())):
            referrer = self._objects.get(referrer_uuid)
            if referrer is not None:
                edges.append((referrer, attribute))
        return edges

    def referrer_count(self, node: Node) -> int:
        return sum(self._referrers.get(node.uuid, Counter()).values())

    def walk(self) -> Iterator[Node]:
        """Depth-first pre-order traversal from root; each node once."""
        if self._root is None:
            return
        visited: Set[str] = set()
        stack = [self._root]
        while stack:
            node = stack.pop()
            if node.uuid in visited:
                continue
            visited.add(node.uuid)
            yield node
            children = [target for _attribute, target in node.references() if target.uuid not in visited]
            stack.extend(reversed(children))

    def reachable_uuids(self) -> Set[str]:
        return {node.uuid for node in self.walk()}

    # ========== ORDERING ==========

    def sort(self) -> None:
        """Stable, recursive sort of every schema-designated list attribute."""
        for node in list(self.walk()):
            for attribute in node.schema.sorted_attributes:
                value = node.get(attribute)
                if isinstance(value, ReferenceList):
                    value.sort(key=lambda element: element.sort_value)

    # ========== CONVERSION ==========

    def to_plist(self) -> Dict[str, Any]:
        from pbxgraph.serializer import to_plist
        return to_plist(self)

    def to_tree_hash(self) -> Dict[str, Any]:
        from pbxgraph.serializer import to_tree_hash
        return to_tree_hash(self)

    def list(self, isa: str) -> List[Node]:
        """Registered nodes of one kind, in uuid-map order."""
        return [node for node in self._objects.values() if node.isa == isa]


def _remap_uuids(value: Any, mapping: Dict[str, str]) -> Any:
    if isinstance(value, dict):
        return {mapping.get(key, key): _remap_uuids(item, mapping) for key, item in value.items()}
    if isinstance(value, list):
        return [_remap_uuids(item, mapping) for item in value]
    if isinstance(value, str):
        return mapping.get(value, value)
    return value
