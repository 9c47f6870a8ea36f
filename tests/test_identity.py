"""Tests for identifier generation and the predictable-uuid pass."""
import re

import pytest

from pbxgraph import IdentityRegistry, InvalidArgument, Project

ROOT_UUID = 'D41D8CD98F00B204E9800998ECF8427E'


class TestIdentityRegistry:
    """Tests for random identifier generation."""

    def test_generates_24_character_hex_uuids(self):
        """Test generated uuids are 24 uppercase hex digits."""
        registry = IdentityRegistry(seed=7)
        uuid = registry.generate_uuid()
        assert re.fullmatch(r'[0-9A-F]{24}', uuid)

    def test_generated_uuids_are_remembered(self):
        """Test generated uuids are known to the registry."""
        registry = IdentityRegistry(seed=7)
        uuid = registry.generate_uuid()
        assert uuid in registry
        assert len(registry) == 1

    def test_same_seed_same_sequence(self):
        """Test two registries with the same seed agree."""
        first = IdentityRegistry(seed=3).generate_unique_batch(5)
        second = IdentityRegistry(seed=3).generate_unique_batch(5)
        assert first == second

    def test_batch_is_pairwise_unique(self):
        """Test a batch contains no duplicates."""
        batch = IdentityRegistry(seed=11).generate_unique_batch(500)
        assert len(set(batch)) == 500

    def test_reserved_uuids_are_never_generated(self):
        """Test a reserved uuid cannot be handed out again."""
        seeded = IdentityRegistry(seed=5)
        expected = seeded.generate_uuid()
        registry = IdentityRegistry(seed=5)
        registry.reserve(expected)
        assert registry.generate_uuid() != expected

    def test_negative_batch_rejected(self):
        """Test a negative batch size raises."""
        with pytest.raises(InvalidArgument):
            IdentityRegistry().generate_unique_batch(-1)

    def test_deterministic_uuid_is_md5(self):
        """Test the deterministic uuid of the empty path is the MD5 of ''."""
        assert IdentityRegistry.deterministic_uuid('') == ROOT_UUID


def test_project_uuid_helpers(project):
    """Test the graph-level uuid helpers."""
    assert len(project.generate_uuid()) == 24
    before = len(project.generated_uuids)
    batch = project.generate_available_uuid_list(75)
    assert len(set(batch)) == 75
    assert len(project.generated_uuids) >= before + 75


def test_unattached_uuids_are_tracked(project):
    """Test uuids of nodes that were never attached are still known."""
    node = project.create('PBXFileReference')
    assert node.uuid not in project.uuids
    assert node.uuid in project.generated_uuids


class TestPredictableUuids:
    """Tests for predictabilize_uuids()."""

    @staticmethod
    def build(seed):
        project = Project(seed=seed)
        group = project.new_group('Sources')
        project.new_file('main.m', group=group)
        project.new_file('AppDelegate.m', group=group)
        project.new_group('Resources')
        project.predictabilize_uuids()
        return project

    def test_same_steps_same_uuids(self):
        """Test two projects built the same way end with the same uuids."""
        assert sorted(self.build(1).uuids) == sorted(self.build(2).uuids)

    def test_root_uuid_constant(self):
        """Test the root object always gets the MD5 of the empty path."""
        assert self.build(4).root_object.uuid == ROOT_UUID
        project = Project('/tmp/Other.xcodeproj', seed=9)
        project.predictabilize_uuids()
        assert project.root_object.uuid == ROOT_UUID

    def test_no_duplicate_uuids(self):
        """Test the re-keyed graph has no duplicates."""
        project = self.build(5)
        assert len(project.uuids) == len(set(project.uuids))
        assert all(len(uuid) == 32 for uuid in project.uuids)

    def test_identical_siblings_get_distinct_uuids(self):
        """Test two content-identical groups under one parent are told apart."""
        project = Project(seed=1)
        first = project.new_group('Same')
        second = project.new_group('Same')
        project.predictabilize_uuids()
        assert first.uuid != second.uuid
        assert project.find(first.uuid) is first
        assert project.find(second.uuid) is second

    def test_index_follows_new_uuids(self):
        """Test referrers are still found after re-keying."""
        project = self.build(6)
        group = project['Sources']
        assert group.referrers == [project.main_group]
        assert project.main_group.referrers == [project.root_object]

    def test_foreign_keys_naming_local_nodes_are_rewritten(self):
        """Test a proxy's remoteGlobalIDString follows its local target."""
        project = Project(seed=1)
        target = project.create('PBXNativeTarget')
        target['name'] = 'App'
        project.root_object['targets'].append(target)
        proxy = project.create('PBXContainerItemProxy')
        proxy['containerPortal'] = project.root_object
        proxy['remoteGlobalIDString'] = target.uuid
        dependency = project.create('PBXTargetDependency')
        dependency['targetProxy'] = proxy
        target['dependencies'].append(dependency)

        project.predictabilize_uuids()
        assert proxy['remoteGlobalIDString'] == target.uuid

    def test_foreign_keys_naming_other_projects_are_kept(self):
        """Test a remote identifier from another project is left untouched."""
        project = Project(seed=1)
        proxy = project.create('PBXContainerItemProxy')
        proxy['remoteGlobalIDString'] = 'ABCDEFABCDEFABCDEFABCDEF'
        dependency = project.create('PBXTargetDependency')
        dependency['targetProxy'] = proxy
        target = project.create('PBXAggregateTarget')
        target['dependencies'].append(dependency)
        project.root_object['targets'].append(target)

        project.predictabilize_uuids()
        assert proxy['remoteGlobalIDString'] == 'ABCDEFABCDEFABCDEFABCDEF'

    def test_target_attributes_keys_are_rewritten(self):
        """Test uuid-keyed project attributes follow their targets."""
        project = Project(seed=1)
        target = project.create('PBXNativeTarget')
        target['name'] = 'App'
        project.root_object['targets'].append(target)
        attributes = dict(project.root_object['attributes'])
        attributes['TargetAttributes'] = {target.uuid: {'CreatedOnToolsVersion': '15.0'}}
        project.root_object['attributes'] = attributes

        project.predictabilize_uuids()
        assert project.root_object['attributes']['TargetAttributes'] == {
            target.uuid: {'CreatedOnToolsVersion': '15.0'}
        }
