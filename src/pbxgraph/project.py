"""
Project: an ObjectGraph bound to an `.xcodeproj` bundle on disk.

Adds the project-level conveniences on top of the generic graph: the
from-scratch skeleton (main group, Products and Frameworks groups, Debug and
Release configurations), open/save, group and file lookup, and queries about
app extensions and the targets that host them.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging
import os

from pbxgraph.catalog import APP_EXTENSION_PRODUCT_TYPES, file_type_for_path, project_build_settings
from pbxgraph.config import FormatConfig
from pbxgraph.errors import InvalidArgument, NotApplicable
from pbxgraph.graph import ObjectGraph
from pbxgraph.node import Node
from pbxgraph.schema import SchemaCatalog
from pbxgraph.serializer import deserialize, serialize

logger = logging.getLogger(__name__)

GROUP_KINDS = frozenset({'PBXGroup', 'PBXVariantGroup', 'XCVersionGroup'})


class Project(ObjectGraph):
    """An Xcode project.

    Args:
        path: Location of the `.xcodeproj` bundle (used by save() and for
              resolving file paths).
        object_version: Document object version for new projects.
        seed: Seed for the identifier generator.
        skip_initialization: Leave the graph empty (used when loading).

    Example::

        project = Project('App.xcodeproj')
        sources = project.new_group('Sources')
        project.new_file('Sources/main.m', group=sources)
        project.save()
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        object_version: Optional[Union[str, int]] = None,
        seed: Optional[int] = None,
        skip_initialization: bool = False,
        catalog: Optional[SchemaCatalog] = None,
        config: Optional[FormatConfig] = None,
    ):
        super().__init__(catalog=catalog, config=config, seed=seed)
        self.path: Optional[Path] = Path(path).expanduser().absolute() if path is not None else None
        if object_version is not None:
            self.object_version = str(object_version)
        if not skip_initialization:
            self._initialize_from_scratch()

    def _initialize_from_scratch(self) -> None:
        root = self.create('PBXProject')
        self.set_root(root)
        root['mainGroup'] = self.create('PBXGroup')
        root['productRefGroup'] = self.new_group('Products')
        root['buildConfigurationList'] = self.create('XCConfigurationList')
        self.add_build_configuration('Debug', 'debug')
        self.add_build_configuration('Release', 'release')
        self.new_group('Frameworks')
        logger.debug(f"Initialized new project with {len(self.uuids)} objects")

    # ========== PERSISTENCE ==========

    @classmethod
    def open(cls, path: Union[str, Path], seed: Optional[int] = None,
             catalog: Optional[SchemaCatalog] = None,
             config: Optional[FormatConfig] = None) -> 'Project':
        """Load a project from an `.xcodeproj` bundle or its document file."""
        path = Path(path).expanduser()
        project = cls(path, seed=seed, skip_initialization=True, catalog=catalog, config=config)
        if path.is_dir():
            document = path / project.config.project_file_name
        else:
            document = path
            project.path = path.absolute().parent
        deserialize(document.read_text(encoding='utf-8'), project, path=document)
        return project

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write the document into the bundle at `path` (default: self.path).

        Returns:
            Path of the written document file.
        """
        if path is not None:
            self.path = Path(path).expanduser().absolute()
        if self.path is None:
            raise InvalidArgument("No path to save the project to")
        self.path.mkdir(parents=True, exist_ok=True)
        document = self.path / self.config.project_file_name
        document.write_text(serialize(self), encoding='utf-8')
        logger.info(f"Saved {len(self.uuids)} objects to {document}")
        return document

    @property
    def name(self) -> Optional[str]:
        if self._name is not None:
            return self._name
        return self.path.stem if self.path is not None else None

    # ========== STRUCTURE ==========

    @property
    def main_group(self) -> Optional[Node]:
        return self.root_object['mainGroup'] if self.root_object is not None else None

    @property
    def products_group(self) -> Optional[Node]:
        return self.root_object['productRefGroup'] if self.root_object is not None else None

    @property
    def frameworks_group(self) -> Optional[Node]:
        return self.group_for_path('Frameworks')

    @property
    def groups(self) -> List[Node]:
        """Groups directly inside the main group."""
        if self.main_group is None:
            return []
        return [child for child in self.main_group['children'] or [] if child.isa in GROUP_KINDS]

    @property
    def files(self) -> List[Node]:
        return self.list('PBXFileReference')

    @property
    def products(self) -> List[Node]:
        group = self.products_group
        return list(group['children'] or []) if group is not None else []

    @property
    def targets(self) -> List[Node]:
        if self.root_object is None:
            return []
        return self.root_object['targets'] or []

    @property
    def native_targets(self) -> List[Node]:
        return [target for target in self.targets if target.isa == 'PBXNativeTarget']

    @property
    def build_configuration_list(self) -> Optional[Node]:
        return self.root_object['buildConfigurationList'] if self.root_object is not None else None

    @property
    def build_configurations(self) -> List[Node]:
        configuration_list = self.build_configuration_list
        if configuration_list is None:
            return []
        return configuration_list['buildConfigurations'] or []

    def build_settings(self, name: str) -> Optional[Dict[str, Any]]:
        """Build settings of the project configuration called `name`."""
        for configuration in self.build_configurations:
            if configuration['name'] == name:
                return configuration['buildSettings']
        return None

    def group_for_path(self, path: str) -> Optional[Node]:
        """Group reached from the main group by display names, e.g. 'Pods/libPusher'."""
        group = self.main_group
        for component in (part for part in path.split('/') if part):
            if group is None:
                return None
            group = next(
                (child for child in group['children'] or []
                 if child.isa in GROUP_KINDS and child.display_name == component),
                None,
            )
        return group

    def __getitem__(self, path: str) -> Optional[Node]:
        return self.group_for_path(path)

    # ========== CREATION HELPERS ==========

    def new_group(self, name: str, path: Optional[str] = None,
                  source_tree: str = '<group>', parent: Optional[Node] = None) -> Node:
        """Create a group and append it to `parent` (default: the main group)."""
        group = self.create('PBXGroup')
        group['name'] = name
        if path is not None:
            group['path'] = path
        group['sourceTree'] = source_tree
        (parent if parent is not None else self.main_group)['children'].append(group)
        return group

    def new_file(self, path: str, source_tree: str = '<group>', group: Optional[Node] = None) -> Node:
        """Create a file reference and append it to `group` (default: the main group)."""
        reference = self.create('PBXFileReference')
        reference['path'] = path
        reference['sourceTree'] = source_tree
        file_type = file_type_for_path(path)
        if file_type is not None:
            reference['lastKnownFileType'] = file_type
        (group if group is not None else self.main_group)['children'].append(reference)
        return reference

    def add_build_configuration(self, name: str, kind: str = 'release') -> Node:
        """Project configuration called `name`, created with `kind` defaults if missing."""
        for configuration in self.build_configurations:
            if configuration['name'] == name:
                return configuration
        configuration = self.create('XCBuildConfiguration')
        configuration['name'] = name
        configuration['buildSettings'] = project_build_settings(kind)
        self.build_configuration_list['buildConfigurations'].append(configuration)
        return configuration

    # ========== PATHS ==========

    @property
    def project_dir(self) -> Path:
        """Directory holding the bundle; file paths are relative to it."""
        base = self.path.parent if self.path is not None else Path.cwd()
        project_dir_path = self.root_object['projectDirPath'] if self.root_object is not None else None
        return base / project_dir_path if project_dir_path else base

    def _parent_group(self, node: Node) -> Optional[Node]:
        for referrer, attribute in self.incoming(node):
            if attribute == 'children' and referrer.isa in GROUP_KINDS:
                return referrer
        return None

    def real_path(self, node: Node) -> Path:
        """Absolute location of a group or file reference."""
        source_tree = node['sourceTree'] or '<group>'
        relative = node['path'] or ''
        if source_tree == '<absolute>':
            base = Path('/')
        elif source_tree == 'SOURCE_ROOT':
            base = self.project_dir
        elif source_tree == '<group>':
            parent = self._parent_group(node)
            base = self.real_path(parent) if parent is not None else self.project_dir
        else:
            base = Path(f"${{{source_tree}}}")
        return Path(os.path.normpath(base / relative))

    def reference_for_path(self, absolute_path: Union[str, Path]) -> Optional[Node]:
        """File reference whose real path is `absolute_path`, if any."""
        absolute_path = Path(absolute_path)
        if not absolute_path.is_absolute():
            raise InvalidArgument(f"Paths must be absolute: {absolute_path}")
        target = Path(os.path.normpath(absolute_path))
        return next((file for file in self.files if self.real_path(file) == target), None)

    # ========== EXTENSIONS ==========

    @staticmethod
    def is_app_extension(target: Node) -> bool:
        return target['productType'] in APP_EXTENSION_PRODUCT_TYPES

    @staticmethod
    def _dependency_uuid(dependency: Node) -> Optional[str]:
        if dependency['target'] is not None:
            return dependency['target'].uuid
        proxy = dependency['targetProxy']
        return proxy['remoteGlobalIDString'] if proxy is not None else None

    def _host_targets(self, embedded: Node) -> List[Node]:
        return [
            target for target in self.native_targets
            if target is not embedded
            and embedded.uuid in (self._dependency_uuid(dep) for dep in target['dependencies'] or [])
        ]

    def host_targets_for_app_extension_target(self, target: Node) -> List[Node]:
        """Native targets that depend on (and so embed) the extension `target`."""
        if not self.is_app_extension(target):
            raise NotApplicable(f"{target} is not an app extension")
        return self._host_targets(target)

    def app_extensions_for_native_target(self, target: Node) -> List[Node]:
        """Extension targets hosted by `target`; empty for an extension itself."""
        if self.is_app_extension(target):
            return []
        return [
            candidate for candidate in self.native_targets
            if self.is_app_extension(candidate) and target in self._host_targets(candidate)
        ]

    # ========== PRESENTATION ==========

    def pretty_print(self) -> Dict[str, Any]:
        """Nested summary of the file references, targets and configurations."""
        main_group = self.main_group
        children = (main_group['children'] or []) if main_group is not None else []
        return {
            'File References': [_pretty(child) for child in children],
            'Targets': [_pretty(target) for target in self.targets],
            'Build Configurations': [
                _pretty(configuration)
                for configuration in sorted(self.build_configurations, key=lambda node: node.display_name)
            ],
        }

    # ========== COMPARISON ==========

    def diff(self, other: 'Project', key_1: str = 'project_1', key_2: str = 'project_2'):
        from pbxgraph.differ import project_diff
        return project_diff(self, other, key_1, key_2)

    def __repr__(self) -> str:
        return f"<Project path=`{self.path}` objects={len(self.uuids)}>"


def _pretty(node: Node) -> Any:
    if node.isa in GROUP_KINDS:
        return {node.display_name: [_pretty(child) for child in node['children'] or []]}
    if node.isa == 'XCBuildConfiguration':
        settings = node['buildSettings'] or {}
        return {node.display_name: {'Build Settings': dict(sorted(settings.items()))}}
    if node.schema.attribute('buildPhases') is not None:
        configuration_list = node['buildConfigurationList']
        configurations = []
        if configuration_list is not None:
            configurations = configuration_list['buildConfigurations'] or []
        return {node.display_name: {
            'Build Phases': [_pretty(phase) for phase in node['buildPhases'] or []],
            'Build Configurations': [_pretty(configuration) for configuration in configurations],
        }}
    if node.schema.attribute('files') is not None:
        return {node.display_name: [build_file.display_name for build_file in node['files'] or []]}
    return node.display_name
