"""
Conversion between object graphs and project documents.

deserialize() builds a graph from document text without back-filling
defaults, so a document written by serialize() reads back into a graph that
writes the same bytes. serialize() produces the canonical layout: objects
grouped into `/* Begin <isa> section */` blocks sorted by isa then uuid,
keys sorted with `isa` first, and every reference followed by a comment
naming its target.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union
import copy
import logging

from pbxgraph.errors import DanglingReference, InvalidArgument, MalformedDocument
from pbxgraph.graph import ObjectGraph
from pbxgraph.node import Node, ReferenceList, ReferenceMapList, plist_value
from pbxgraph.plist import PBXRef, detect_merge_conflict, format_value, loads, quote
from pbxgraph.schema import AttributeKind

logger = logging.getLogger(__name__)


# ==================== READING ====================

def deserialize(
    text: str,
    graph: Optional[ObjectGraph] = None,
    path: Optional[Union[str, Path]] = None,
) -> ObjectGraph:
    """Build a graph from document text.

    Args:
        text: Document contents.
        graph: Empty graph to load into; a new ObjectGraph when omitted.
        path: Document path, attached to every load error.

    Raises:
        MergeConflictDetected: Conflict markers start a line.
        MalformedDocument: Syntax error or invalid document shape.
        DanglingReference: A reference names a uuid absent from `objects`.
    """
    if graph is None:
        graph = ObjectGraph(name=_bundle_name(path))
    elif graph.root_object is not None:
        raise InvalidArgument("Documents can only be loaded into an empty graph")

    detect_merge_conflict(text, path)
    document = loads(text, path)
    if not isinstance(document, dict):
        raise MalformedDocument("top-level value is not a dictionary", path)

    objects = document.get('objects')
    if not isinstance(objects, dict):
        raise MalformedDocument("`objects` is missing or not a dictionary", path)
    root_uuid = document.get('rootObject')
    if not isinstance(root_uuid, str):
        raise MalformedDocument("`rootObject` is missing or not a string", path)
    if root_uuid not in objects:
        raise DanglingReference(root_uuid, '<document>', 'rootObject', path)
    for key in ('archiveVersion', 'objectVersion'):
        if key in document and not isinstance(document[key], str):
            raise MalformedDocument(f"`{key}` is not a string", path)
    classes = document.get('classes', {})
    if not isinstance(classes, dict):
        raise MalformedDocument("`classes` is not a dictionary", path)

    nodes: Dict[str, Node] = {}
    for uuid, attributes in objects.items():
        if not isinstance(attributes, dict):
            raise MalformedDocument(f"object {uuid} is not a dictionary", path)
        isa = attributes.get('isa')
        if not isinstance(isa, str):
            raise MalformedDocument(f"object {uuid} has no `isa`", path)
        if isa not in graph.catalog:
            raise MalformedDocument(f"object {uuid} has unknown isa `{isa}`", path)
        nodes[uuid] = graph._adopt(uuid, isa)

    for uuid, attributes in objects.items():
        node = nodes[uuid]
        for key, value in attributes.items():
            if key == 'isa':
                continue
            spec = node.schema.attribute(key)
            if spec is None:
                logger.warning(f"Keeping unknown attribute `{key}` of {node.isa} {uuid}")
                node._attributes[key] = value
                continue
            node._attributes[key] = _resolve(node, key, spec.kind, value, nodes, path)

    graph.archive_version = document.get('archiveVersion', graph.archive_version)
    graph.object_version = document.get('objectVersion', graph.object_version)
    graph.classes = classes
    graph.set_root(nodes[root_uuid])

    dropped = len(objects) - len(graph.uuids)
    if dropped:
        logger.warning(f"Dropped {dropped} object(s) unreachable from the root object")
    logger.info(f"Loaded {len(graph.uuids)} objects{f' from {path}' if path else ''}")
    return graph


def _bundle_name(path: Optional[Union[str, Path]]) -> Optional[str]:
    """`App` for `.../App.xcodeproj/project.pbxproj`."""
    if path is None:
        return None
    bundle = Path(path).parent
    return bundle.stem if bundle.suffix == '.xcodeproj' else None


def _resolve(node: Node, key: str, kind: AttributeKind, value: Any,
             nodes: Dict[str, Node], path) -> Any:
    def lookup(uuid: Any) -> Node:
        if not isinstance(uuid, str):
            raise MalformedDocument(f"`{key}` of {node.uuid} holds a non-string reference", path)
        target = nodes.get(uuid)
        if target is None:
            raise DanglingReference(uuid, node.uuid, key, path)
        return target

    if kind is AttributeKind.TO_ONE:
        return lookup(value)
    if kind is AttributeKind.TO_MANY:
        if not isinstance(value, list):
            raise MalformedDocument(f"`{key}` of {node.uuid} is not a list", path)
        return ReferenceList(node, key, [lookup(item) for item in value])
    if kind is AttributeKind.REFERENCES_BY_KEYS:
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            raise MalformedDocument(f"`{key}` of {node.uuid} is not a list of dictionaries", path)
        return ReferenceMapList(
            node, key, [{name: lookup(item) for name, item in entry.items()} for entry in value]
        )
    return value


# ==================== WRITING ====================

def comment_for(node: Node) -> Optional[str]:
    """Comment written after references to `node`; None for no comment.

    Unnamed nodes of kinds with `comment_unnamed` off get no comment. When the
    referrer is the root object and the graph has a name, templates see that
    name as `referrer_name`.
    """
    schema = node.schema
    template = schema.comment_template
    if template is None:
        if not schema.comment_unnamed and node.explicit_name is None:
            return None
        return node.display_name
    edges = node.graph.incoming(node)
    if not edges:
        return node.display_name
    referrer = edges[0][0]
    referrer_name = referrer.display_name
    if referrer is node.graph.root_object and node.graph.name:
        referrer_name = node.graph.name
    return template.format(
        name=node.display_name,
        referrer_name=referrer_name,
        referrer_isa=referrer.isa,
    )


def serialize(graph: ObjectGraph) -> str:
    """Canonical document text for `graph`."""
    root = graph.root_object
    if root is None:
        raise InvalidArgument("Cannot serialize a graph without a root object")

    comments: Dict[str, str] = {}

    def ref(target: Node) -> PBXRef:
        if target.uuid not in comments:
            comments[target.uuid] = comment_for(target)
        return PBXRef(target.uuid, comments[target.uuid])

    sections: Dict[str, List[Node]] = {}
    for node in graph.objects:
        sections.setdefault(node.isa, []).append(node)

    lines = [graph.config.header, '{']
    lines.append(f"\tarchiveVersion = {quote(graph.archive_version)};")
    lines.append(f"\tclasses = {format_value(graph.classes, 1)};")
    lines.append(f"\tobjectVersion = {quote(graph.object_version)};")
    lines.append("\tobjects = {")
    for isa in sorted(sections):
        single_line = isa in graph.config.single_line_kinds
        lines.append("")
        lines.append(f"/* Begin {isa} section */")
        for node in sorted(sections[isa], key=lambda item: item.uuid):
            body = {'isa': node.isa}
            for key, value in node.raw_items():
                body[key] = plist_value(node.schema.attribute(key), value, ref)
            lines.append(f"\t\t{format_value(ref(node))} = {format_value(body, 2, single_line)};")
        lines.append(f"/* End {isa} section */")
    lines.append("\t};")
    lines.append(f"\trootObject = {format_value(ref(root))};")
    lines.append("}")
    logger.debug(f"Serialized {len(graph.uuids)} objects")
    return "\n".join(lines) + "\n"


# ==================== SNAPSHOTS ====================

def to_plist(graph: ObjectGraph) -> Dict[str, Any]:
    """Dictionary form of the document, uuids in place of references."""
    root = graph.root_object
    return {
        'archiveVersion': graph.archive_version,
        'classes': copy.deepcopy(graph.classes),
        'objectVersion': graph.object_version,
        'objects': {node.uuid: node.to_plist() for node in graph.objects},
        'rootObject': root.uuid if root is not None else None,
    }


def node_tree_hash(node: Node, _ancestors: Optional[Set[int]] = None) -> Dict[str, Any]:
    """`node` with every reference expanded; back-edges become cycle markers."""
    ancestors = (_ancestors or set()) | {id(node)}

    def expand(target: Node) -> Dict[str, Any]:
        if id(target) in ancestors:
            return {'displayName': target.display_name, 'isa': target.isa, 'cycle': True}
        return node_tree_hash(target, ancestors)

    tree = {'displayName': node.display_name, 'isa': node.isa}
    for key, value in node.raw_items():
        tree[key] = plist_value(node.schema.attribute(key), value, expand)
    return tree


def to_tree_hash(graph: ObjectGraph) -> Dict[str, Any]:
    root = graph.root_object
    return {
        'archiveVersion': graph.archive_version,
        'classes': copy.deepcopy(graph.classes),
        'objectVersion': graph.object_version,
        'rootObject': node_tree_hash(root) if root is not None else None,
    }
