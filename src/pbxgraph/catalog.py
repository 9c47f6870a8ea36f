"""
Default schema catalog for the Xcode project kinds.

This module is static data: it builds the SchemaCatalog injected into
graphs created without an explicit catalog, plus the Xcode-specific lookup
tables used by the Project facade (file types by extension, extension
product types, project-level default build settings).
"""
from types import MappingProxyType
from typing import Optional

from pbxgraph.schema import AttributeKind, AttributeSpec, KindSchema, SchemaCatalog


def _simple(name: str, default=None, uuid_map_keys=()) -> AttributeSpec:
    if isinstance(default, dict):
        default = MappingProxyType(default)
    elif isinstance(default, list):
        default = tuple(default)
    return AttributeSpec(name, AttributeKind.SIMPLE, default, tuple(uuid_map_keys))


def _foreign(name: str) -> AttributeSpec:
    return AttributeSpec(name, AttributeKind.FOREIGN_KEY)


def _to_one(name: str) -> AttributeSpec:
    return AttributeSpec(name, AttributeKind.TO_ONE)


def _to_many(name: str, filled: bool = True) -> AttributeSpec:
    return AttributeSpec(name, AttributeKind.TO_MANY, () if filled else None)


def _by_keys(name: str) -> AttributeSpec:
    return AttributeSpec(name, AttributeKind.REFERENCES_BY_KEYS)


# ========== FILE TYPES ==========

LAST_KNOWN_FILE_TYPES = MappingProxyType({
    'a': 'archive.ar',
    'app': 'wrapper.application',
    'appex': 'wrapper.app-extension',
    'bundle': 'wrapper.plug-in',
    'c': 'sourcecode.c.c',
    'cpp': 'sourcecode.cpp.cpp',
    'dylib': 'compiled.mach-o.dylib',
    'framework': 'wrapper.framework',
    'h': 'sourcecode.c.h',
    'hpp': 'sourcecode.cpp.h',
    'json': 'text.json',
    'm': 'sourcecode.c.objc',
    'mm': 'sourcecode.cpp.objcpp',
    'plist': 'text.plist.xml',
    'png': 'image.png',
    'storyboard': 'file.storyboard',
    'strings': 'text.plist.strings',
    'swift': 'sourcecode.swift',
    'xcassets': 'folder.assetcatalog',
    'xcconfig': 'text.xcconfig',
    'xcdatamodel': 'wrapper.xcdatamodel',
    'xcframework': 'wrapper.xcframework',
    'xcodeproj': 'wrapper.pb-project',
    'xib': 'file.xib',
})


def file_type_for_path(path: str) -> Optional[str]:
    """lastKnownFileType for a path, or None when the extension is unknown."""
    name = path.rstrip('/').rsplit('/', 1)[-1]
    if '.' not in name:
        return None
    return LAST_KNOWN_FILE_TYPES.get(name.rsplit('.', 1)[-1].lower())


# ========== PRODUCT TYPES ==========

APP_EXTENSION_PRODUCT_TYPES = frozenset({
    'com.apple.product-type.app-extension',
    'com.apple.product-type.app-extension.messages',
    'com.apple.product-type.app-extension.messages-sticker-pack',
    'com.apple.product-type.extensionkit-extension',
    'com.apple.product-type.tv-app-extension',
    'com.apple.product-type.watchkit-extension',
    'com.apple.product-type.watchkit2-extension',
})


# ========== PROJECT BUILD SETTINGS ==========

PROJECT_DEFAULT_BUILD_SETTINGS = MappingProxyType({
    'all': MappingProxyType({
        'ALWAYS_SEARCH_USER_PATHS': 'NO',
        'CLANG_ENABLE_MODULES': 'YES',
        'CLANG_ENABLE_OBJC_ARC': 'YES',
        'CLANG_WARN_BOOL_CONVERSION': 'YES',
        'CLANG_WARN_EMPTY_BODY': 'YES',
        'CLANG_WARN_UNREACHABLE_CODE': 'YES',
        'COPY_PHASE_STRIP': 'NO',
        'ENABLE_STRICT_OBJC_MSGSEND': 'YES',
        'GCC_NO_COMMON_BLOCKS': 'YES',
        'GCC_WARN_UNUSED_VARIABLE': 'YES',
        'SYMROOT': '${SRCROOT}/../build',
    }),
    'debug': MappingProxyType({
        'DEBUG_INFORMATION_FORMAT': 'dwarf',
        'ENABLE_TESTABILITY': 'YES',
        'GCC_DYNAMIC_NO_PIC': 'NO',
        'GCC_OPTIMIZATION_LEVEL': '0',
        'GCC_PREPROCESSOR_DEFINITIONS': ('DEBUG=1', '$(inherited)'),
        'ONLY_ACTIVE_ARCH': 'YES',
    }),
    'release': MappingProxyType({
        'DEBUG_INFORMATION_FORMAT': 'dwarf-with-dsym',
        'ENABLE_NS_ASSERTIONS': 'NO',
        'VALIDATE_PRODUCT': 'YES',
    }),
})


def project_build_settings(kind: str) -> dict:
    """Fresh copy of the project-level settings for 'debug' or 'release'."""
    settings = {}
    for key, value in PROJECT_DEFAULT_BUILD_SETTINGS['all'].items():
        settings[key] = list(value) if isinstance(value, tuple) else value
    for key, value in PROJECT_DEFAULT_BUILD_SETTINGS.get(kind, {}).items():
        settings[key] = list(value) if isinstance(value, tuple) else value
    return settings


# ========== KINDS ==========

_GROUP_ATTRIBUTES = (
    _to_many('children'),
    _simple('indentWidth'),
    _simple('name'),
    _simple('path'),
    _simple('sourceTree', '<group>'),
    _simple('tabWidth'),
    _simple('usesTabs'),
    _simple('wrapsLines'),
)

_PHASE_ATTRIBUTES = (
    _simple('buildActionMask', '2147483647'),
    _to_many('files'),
    _simple('runOnlyForDeploymentPostprocessing', '0'),
)

_TARGET_ATTRIBUTES = (
    _to_one('buildConfigurationList'),
    _to_many('buildPhases'),
    _to_many('dependencies'),
    _simple('name'),
    _simple('productName'),
)


def _phase(isa: str, fallback: str, *extra: AttributeSpec) -> KindSchema:
    return KindSchema(
        isa=isa,
        attributes=_PHASE_ATTRIBUTES + extra,
        display_attributes=('name',),
        display_fallback=fallback,
    )


KINDS = (
    KindSchema(
        isa='PBXProject',
        attributes=(
            _simple('attributes', {'LastUpgradeCheck': '1500'}, uuid_map_keys=('TargetAttributes',)),
            _to_one('buildConfigurationList'),
            _simple('compatibilityVersion', 'Xcode 3.2'),
            _simple('developmentRegion', 'en'),
            _simple('hasScannedForEncodings', '0'),
            _simple('knownRegions', ['en', 'Base']),
            _to_one('mainGroup'),
            _simple('minimizedProjectReferenceProxies'),
            _to_many('packageReferences', filled=False),
            _simple('preferredProjectObjectVersion'),
            _to_one('productRefGroup'),
            _simple('projectDirPath', ''),
            _by_keys('projectReferences'),
            _simple('projectRoot', ''),
            _to_many('targets'),
        ),
        sorted_attributes=('targets',),
        display_attributes=(),
        display_fallback='Project object',
    ),
    KindSchema(
        isa='PBXGroup',
        attributes=_GROUP_ATTRIBUTES,
        sorted_attributes=('children',),
        role_names=(('mainGroup', 'Main Group'),),
        comment_unnamed=False,
    ),
    KindSchema(
        isa='PBXVariantGroup',
        attributes=_GROUP_ATTRIBUTES,
        sorted_attributes=('children',),
        comment_unnamed=False,
    ),
    KindSchema(
        isa='XCVersionGroup',
        attributes=_GROUP_ATTRIBUTES + (
            _to_one('currentVersion'),
            _simple('versionGroupType'),
        ),
        comment_unnamed=False,
    ),
    KindSchema(
        isa='PBXFileReference',
        attributes=(
            _simple('comments'),
            _simple('explicitFileType'),
            _simple('fileEncoding'),
            _simple('includeInIndex', '1'),
            _simple('indentWidth'),
            _simple('lastKnownFileType'),
            _simple('lineEnding'),
            _simple('name'),
            _simple('path'),
            _simple('plistStructureDefinitionIdentifier'),
            _simple('sourceTree', 'SOURCE_ROOT'),
            _simple('tabWidth'),
            _simple('usesTabs'),
            _simple('wrapsLines'),
            _simple('xcLanguageSpecificationIdentifier'),
        ),
    ),
    KindSchema(
        isa='PBXReferenceProxy',
        attributes=(
            _simple('fileType'),
            _simple('name'),
            _simple('path'),
            _to_one('remoteRef'),
            _simple('sourceTree', 'BUILT_PRODUCTS_DIR'),
        ),
        owned_link=True,
    ),
    KindSchema(
        isa='PBXBuildFile',
        attributes=(
            _to_one('fileRef'),
            _simple('platformFilter'),
            _simple('platformFilters'),
            _to_one('productRef'),
            _simple('settings'),
        ),
        display_attributes=('fileRef', 'productRef'),
        comment_template='{name} in {referrer_name}',
        owned_link=True,
    ),
    KindSchema(
        isa='PBXContainerItemProxy',
        attributes=(
            _to_one('containerPortal'),
            _simple('proxyType', '1'),
            _foreign('remoteGlobalIDString'),
            _simple('remoteInfo'),
        ),
        display_attributes=(),
        display_fallback='PBXContainerItemProxy',
        owned_link=True,
    ),
    KindSchema(
        isa='PBXTargetDependency',
        attributes=(
            _simple('name'),
            _simple('platformFilter'),
            _to_one('productRef'),
            _to_one('target'),
            _to_one('targetProxy'),
        ),
        display_attributes=(),
        display_fallback='PBXTargetDependency',
        owned_link=True,
    ),
    KindSchema(
        isa='PBXNativeTarget',
        attributes=_TARGET_ATTRIBUTES + (
            _to_many('buildRules'),
            _to_many('packageProductDependencies', filled=False),
            _to_one('productReference'),
            _simple('productType'),
        ),
        display_attributes=('name',),
    ),
    KindSchema(isa='PBXAggregateTarget', attributes=_TARGET_ATTRIBUTES, display_attributes=('name',)),
    KindSchema(
        isa='PBXLegacyTarget',
        attributes=_TARGET_ATTRIBUTES + (
            _simple('buildArgumentsString', '$(ACTION)'),
            _simple('buildToolPath', '/usr/bin/make'),
            _simple('buildWorkingDirectory'),
            _simple('passBuildSettingsInEnvironment', '1'),
        ),
        display_attributes=('name',),
    ),
    _phase('PBXSourcesBuildPhase', 'Sources'),
    _phase('PBXFrameworksBuildPhase', 'Frameworks'),
    _phase('PBXResourcesBuildPhase', 'Resources'),
    _phase('PBXHeadersBuildPhase', 'Headers'),
    _phase('PBXRezBuildPhase', 'Rez'),
    _phase(
        'PBXCopyFilesBuildPhase', 'CopyFiles',
        _simple('dstPath', ''),
        _simple('dstSubfolderSpec', '1'),
        _simple('name'),
    ),
    _phase(
        'PBXShellScriptBuildPhase', 'ShellScript',
        _simple('alwaysOutOfDate'),
        _simple('dependencyFile'),
        _simple('inputFileListPaths'),
        _simple('inputPaths', []),
        _simple('name'),
        _simple('outputFileListPaths'),
        _simple('outputPaths', []),
        _simple('shellPath', '/bin/sh'),
        _simple('shellScript', ''),
        _simple('showEnvVarsInLog'),
    ),
    KindSchema(
        isa='PBXBuildRule',
        attributes=(
            _simple('compilerSpec'),
            _simple('dependencyFile'),
            _simple('filePatterns'),
            _simple('fileType'),
            _simple('inputFiles'),
            _simple('isEditable', '1'),
            _simple('name'),
            _simple('outputFiles', []),
            _simple('outputFilesCompilerFlags'),
            _simple('runOncePerArchitecture'),
            _simple('script'),
        ),
        display_attributes=('name',),
        display_fallback='PBXBuildRule',
    ),
    KindSchema(
        isa='XCConfigurationList',
        attributes=(
            _to_many('buildConfigurations'),
            _simple('defaultConfigurationIsVisible', '0'),
            _simple('defaultConfigurationName', 'Release'),
        ),
        sorted_attributes=('buildConfigurations',),
        display_attributes=(),
        display_fallback='ConfigurationList',
        comment_template='Build configuration list for {referrer_isa} "{referrer_name}"',
    ),
    KindSchema(
        isa='XCBuildConfiguration',
        attributes=(
            _to_one('baseConfigurationReference'),
            _simple('baseConfigurationReferenceAnchor'),
            _simple('baseConfigurationReferenceRelativePath'),
            _simple('buildSettings', {}),
            _simple('name'),
        ),
        display_attributes=('name',),
    ),
    KindSchema(
        isa='XCRemoteSwiftPackageReference',
        attributes=(
            _simple('repositoryURL'),
            _simple('requirement'),
        ),
        display_attributes=('repositoryURL',),
        display_fallback='XCRemoteSwiftPackageReference',
    ),
    KindSchema(
        isa='XCLocalSwiftPackageReference',
        attributes=(_simple('relativePath'),),
        display_attributes=('relativePath',),
        display_fallback='XCLocalSwiftPackageReference',
    ),
    KindSchema(
        isa='XCSwiftPackageProductDependency',
        attributes=(
            _to_one('package'),
            _simple('productName'),
        ),
        display_attributes=('productName',),
    ),
)


_default_catalog: Optional[SchemaCatalog] = None


def default_catalog() -> SchemaCatalog:
    """The shared, immutable catalog of Xcode kinds."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = SchemaCatalog(KINDS)
    return _default_catalog
