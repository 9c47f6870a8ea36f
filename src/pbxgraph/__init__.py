"""
Object graph model for Xcode project documents.

Loads `project.pbxproj` documents into a graph of typed nodes, keeps
identity and reachability consistent while the graph is edited, and writes
the canonical Xcode text back out.

Key Features:
- Lazy registration: nodes join the project only once something reachable
  from the root object references them
- Reverse-reference index with cascading removal of owned links
- Byte-stable round trips of Xcode's ASCII plist dialect
- Deterministic uuids derived from each node's path from the root object
- Structural diff of two projects

Quick Start:
    >>> from pbxgraph import Project
    >>>
    >>> project = Project.open('App.xcodeproj')
    >>> group = project.new_group('Pods')
    >>> project.new_file('Pods/Pods.xcconfig', group=group)
    >>> project.sort()
    >>> project.save()

Modules:
    - graph: ObjectGraph (registration, reverse index, removal, sort)
    - node: Node and reference-tracking lists
    - identity: uuid generation and the predictable-uuid pass
    - schema / catalog: kind schemas and the default Xcode catalog
    - plist / serializer: document codec
    - differ: structural diff of tree snapshots
    - project: Project facade
    - config: FormatConfig and the process default
    - errors: exception hierarchy
"""

from pbxgraph.errors import (
    PbxGraphError,
    DocumentError,
    MalformedDocument,
    MergeConflictDetected,
    DanglingReference,
    InvalidArgument,
    NotApplicable,
)
from pbxgraph.config import (
    FormatConfig,
    set_default_config,
    get_default_config,
    reset_default_config,
)
from pbxgraph.schema import AttributeKind, AttributeSpec, KindSchema, SchemaCatalog
from pbxgraph.catalog import default_catalog
from pbxgraph.identity import IdentityRegistry
from pbxgraph.node import Node, ReferenceList, ReferenceMapList
from pbxgraph.graph import ObjectGraph
from pbxgraph.serializer import deserialize, serialize, to_plist, to_tree_hash
from pbxgraph.differ import diff, project_diff
from pbxgraph.project import Project

__version__ = "0.1.0"

__all__ = [
    # Errors
    'PbxGraphError',
    'DocumentError',
    'MalformedDocument',
    'MergeConflictDetected',
    'DanglingReference',
    'InvalidArgument',
    'NotApplicable',
    # Configuration
    'FormatConfig',
    'set_default_config',
    'get_default_config',
    'reset_default_config',
    # Schema
    'AttributeKind',
    'AttributeSpec',
    'KindSchema',
    'SchemaCatalog',
    'default_catalog',
    # Graph
    'IdentityRegistry',
    'Node',
    'ReferenceList',
    'ReferenceMapList',
    'ObjectGraph',
    # Serialization
    'deserialize',
    'serialize',
    'to_plist',
    'to_tree_hash',
    # Diff
    'diff',
    'project_diff',
    # Facade
    'Project',
]
