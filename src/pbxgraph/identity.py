"""
Identity registry: unique object identifiers and the deterministic re-keying pass.

Each graph owns exactly one IdentityRegistry. The registry remembers every
identifier it has generated or been told about (including identifiers of
nodes that were never attached), so new identifiers can never collide with
anything seen before in that graph.

Predictable identifiers:
    compute_predictable_uuids() derives each reachable node's identifier from
    the MD5 digest of its canonical path from root. The path only depends on
    kinds, attribute names and element content, never on the random
    identifiers, so two graphs built the same way end up with the same
    identifiers. Root's path is the empty string, hence its identifier is
    always MD5("") = D41D8CD98F00B204E9800998ECF8427E.
"""
from typing import Any, Dict, List, Optional, Set, Tuple, TYPE_CHECKING
import hashlib
import logging
import random

from pbxgraph.errors import InvalidArgument
from pbxgraph.schema import AttributeKind

if TYPE_CHECKING:
    from pbxgraph.graph import ObjectGraph
    from pbxgraph.node import Node

logger = logging.getLogger(__name__)

FINGERPRINT_DEPTH = 4


class IdentityRegistry:
    """Generates and tracks the identifiers of one graph.

    Args:
        seed: Seed for this registry's private random generator. Two
              registries with the same seed generate the same sequence.
        length: Number of hex digits per generated identifier.
    """

    def __init__(self, seed: Optional[int] = None, length: int = 24):
        self._random = random.Random(seed)
        self._length = length
        self._known: Set[str] = set()

    def __contains__(self, uuid: str) -> bool:
        return uuid in self._known

    def __len__(self) -> int:
        return len(self._known)

    @property
    def known(self) -> Set[str]:
        """Copy of every identifier generated or reserved so far."""
        return set(self._known)

    def reserve(self, uuid: str) -> None:
        """Record an identifier that came from a document or a re-keying pass."""
        self._known.add(uuid)

    def _candidate(self) -> str:
        return f"{self._random.getrandbits(self._length * 4):0{self._length}X}"

    def generate_uuid(self) -> str:
        """A fresh identifier, distinct from every known one."""
        while True:
            candidate = self._candidate()
            if candidate not in self._known:
                self._known.add(candidate)
                return candidate
            logger.debug(f"UUID collision on {candidate}, retrying")

    def generate_unique_batch(self, count: int) -> List[str]:
        """`count` identifiers, pairwise distinct and distinct from known ones."""
        if count < 0:
            raise InvalidArgument(f"count must be non-negative, got {count}")
        return [self.generate_uuid() for _ in range(count)]

    @staticmethod
    def deterministic_uuid(path: str) -> str:
        """Uppercase MD5 hex digest of a canonical path."""
        return hashlib.md5(path.encode('utf-8')).hexdigest().upper()


# ==================== CANONICAL PATHS ====================

def _label(node: 'Node') -> str:
    return f"<{node.isa} {node.display_name}>"


def fingerprint(value: Any, graph: 'ObjectGraph', depth: int = FINGERPRINT_DEPTH) -> str:
    """Depth-limited content rendering used as a list element's path component.

    Strings that name a registered node are replaced by that node's label so
    the result never depends on random identifiers.
    """
    from pbxgraph.node import Node

    if depth == 0:
        return '|'
    if isinstance(value, Node):
        items = {'displayName': value.display_name, 'isa': value.isa}
        items.update(value.raw_items())
        value = items
    if isinstance(value, dict):
        parts = []
        for key in sorted(value, key=str):
            parts.append(f"{_rendered_string(key, graph)}:{fingerprint(value[key], graph, depth - 1)},")
        return ''.join(parts)
    if isinstance(value, (list, tuple)):
        return ','.join(fingerprint(item, graph, depth - 1) for item in value)
    return _rendered_string(str(value), graph)


def _rendered_string(text: str, graph: 'ObjectGraph') -> str:
    node = graph.find(text) if isinstance(text, str) else None
    return _label(node) if node is not None else str(text)


def canonical_paths(graph: 'ObjectGraph') -> List[Tuple['Node', str]]:
    """(node, path) for every node reachable from root, in discovery order.

    Attributes are visited in sorted name order; the first path that reaches
    a node wins.
    """
    root = graph.root_object
    if root is None:
        return []
    paths: Dict[int, str] = {}
    order: List[Tuple['Node', str]] = []
    components: Dict[int, str] = {}

    def component(node: 'Node') -> str:
        key = id(node)
        if key not in components:
            components[key] = fingerprint(node, graph)
        return components[key]

    def visit(node: 'Node', path: str) -> None:
        if id(node) in paths:
            return
        paths[id(node)] = path
        order.append((node, path))
        for name in sorted(node.keys()):
            spec = node.schema.attribute(name)
            if spec is None or not spec.kind.is_reference:
                continue
            value = node.get(name)
            if value is None:
                continue
            if spec.kind is AttributeKind.TO_ONE:
                visit(value, f"{path}/{name}")
            elif spec.kind is AttributeKind.TO_MANY:
                for target in value:
                    visit(target, f"{path}/{name}/{component(target)}")
            else:
                for entry in value:
                    for key in sorted(entry):
                        target = entry[key]
                        visit(target, f"{path}/{name}/{key}/{component(target)}")

    visit(root, '')
    return order


def compute_predictable_uuids(graph: 'ObjectGraph') -> Dict[str, str]:
    """Old uuid -> new deterministic uuid for every reachable node.

    Colliding paths are ordered by (path, discovery order); the first keeps
    the plain digest and the i-th is re-hashed as `path#i` until unused.
    """
    discovered = canonical_paths(graph)
    by_digest: Dict[str, List[Tuple[str, int, 'Node']]] = {}
    for index, (node, path) in enumerate(discovered):
        digest = IdentityRegistry.deterministic_uuid(path)
        by_digest.setdefault(digest, []).append((path, index, node))

    mapping: Dict[str, str] = {}
    taken: Set[str] = set(by_digest)
    for digest, entries in by_digest.items():
        entries.sort(key=lambda entry: (entry[0], entry[1]))
        mapping[entries[0][2].uuid] = digest
        for position, (path, _index, node) in enumerate(entries[1:], start=1):
            counter = position
            candidate = IdentityRegistry.deterministic_uuid(f"{path}#{counter}")
            while candidate in taken:
                counter += 1
                candidate = IdentityRegistry.deterministic_uuid(f"{path}#{counter}")
            taken.add(candidate)
            mapping[node.uuid] = candidate
            logger.debug(f"Deterministic uuid collision for path {path!r}, using suffix #{counter}")
    return mapping
