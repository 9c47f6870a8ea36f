"""Pytest configuration and shared fixtures."""
import pytest

from pbxgraph import Project, reset_default_config


@pytest.fixture(autouse=True)
def reset_format_config():
    """Reset the process default format config around each test."""
    reset_default_config()
    yield
    reset_default_config()


@pytest.fixture
def project(tmp_path):
    """Provide a fresh, seeded project located in a temporary directory."""
    return Project(tmp_path / 'Test.xcodeproj', seed=1)


@pytest.fixture
def project_path(tmp_path):
    """Provide a path for a project bundle that does not exist yet."""
    return tmp_path / 'Saved.xcodeproj'


def add_native_target(project, name, product_type='com.apple.product-type.application'):
    """Create a native target with a configuration list and a sources phase."""
    target = project.create('PBXNativeTarget')
    target['name'] = name
    target['productName'] = name
    target['productType'] = product_type
    configuration_list = project.create('XCConfigurationList')
    for configuration_name in ('Debug', 'Release'):
        configuration = project.create('XCBuildConfiguration')
        configuration['name'] = configuration_name
        configuration_list['buildConfigurations'].append(configuration)
    target['buildConfigurationList'] = configuration_list
    target['buildPhases'].append(project.create('PBXSourcesBuildPhase'))
    project.root_object['targets'].append(target)
    return target


def add_dependency(project, target, dependency_target):
    """Make `target` depend on `dependency_target` through a container proxy."""
    proxy = project.create('PBXContainerItemProxy')
    proxy['containerPortal'] = project.root_object
    proxy['remoteGlobalIDString'] = dependency_target.uuid
    proxy['remoteInfo'] = dependency_target['name']
    dependency = project.create('PBXTargetDependency')
    dependency['target'] = dependency_target
    dependency['targetProxy'] = proxy
    target['dependencies'].append(dependency)
    return dependency


def add_source_file(project, target, path, group=None):
    """Create a file reference and a build file for it in the target's sources phase."""
    reference = project.new_file(path, group=group)
    build_file = project.create('PBXBuildFile')
    build_file['fileRef'] = reference
    target['buildPhases'][0]['files'].append(build_file)
    return reference, build_file
