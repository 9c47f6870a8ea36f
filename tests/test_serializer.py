"""Tests for document loading, writing and snapshots."""
import logging
from pathlib import Path

import pytest

from pbxgraph import (
    DanglingReference,
    FormatConfig,
    MalformedDocument,
    MergeConflictDetected,
    ObjectGraph,
    Project,
    deserialize,
    serialize,
    set_default_config,
    to_plist,
)

SAMPLE = Path(__file__).parent / 'fixtures' / 'Sample.xcodeproj' / 'project.pbxproj'
XCODE_WRITTEN = Path(__file__).parent / 'fixtures' / 'Hello.xcodeproj' / 'project.pbxproj'


@pytest.fixture
def sample_text():
    return SAMPLE.read_text(encoding='utf-8')


def minimal_document(objects, root='900000000000000000000001'):
    return '{archiveVersion = 1; classes = {}; objectVersion = 46; objects = {' + objects + '}; rootObject = ' + root + ';}'


class TestRoundTrip:
    """Reading a canonical document and writing it back is byte identical."""

    def test_sample_round_trip(self, sample_text):
        """Test the sample document is reproduced exactly."""
        assert serialize(deserialize(sample_text, path=SAMPLE)) == sample_text

    def test_xcode_written_round_trip(self):
        """Test a document in the layout Xcode writes is reproduced exactly."""
        text = XCODE_WRITTEN.read_text(encoding='utf-8')
        graph = deserialize(text, path=XCODE_WRITTEN)
        assert graph.name == 'Hello'
        assert serialize(graph) == text

    def test_new_project_round_trip(self, project):
        """Test serialize(deserialize(serialize(p))) == serialize(p)."""
        group = project.new_group('Sources')
        project.new_file('main.m', group=group)
        project.new_file('Cédric わくわく.swift', group=group)
        text = serialize(project)
        assert serialize(deserialize(text)) == text

    def test_non_ascii_is_escaped(self, project):
        """Test saved documents contain only character references."""
        project.new_file('わくわく')
        project.new_file('Cédric')
        text = serialize(project)
        assert text.isascii()
        assert 'わくわく' not in text
        assert '&#12431;&#12367;&#12431;&#12367;' in text
        assert 'C&#233;dric' in text

    def test_non_ascii_is_decoded(self, sample_text):
        """Test character references read back as Unicode."""
        graph = deserialize(sample_text)
        configuration = graph.find('800000000000000000000001')
        assert configuration['buildSettings']['PRODUCT_NAME'] == 'Cédric'

    def test_noncanonical_input_is_canonicalized(self):
        """Test key order and comments in the input do not matter."""
        text = minimal_document(
            '900000000000000000000001 = {targets = (); mainGroup = A00000000000000000000001; isa = PBXProject;};'
            'A00000000000000000000001 = {sourceTree = "<group>"; isa = PBXGroup; children = ();};'
        )
        canonical = serialize(deserialize(text))
        assert '\t\t\tisa = PBXProject;\n\t\t\tmainGroup = A00000000000000000000001;' in canonical
        assert serialize(deserialize(canonical)) == canonical

    def test_single_line_kinds_are_configurable(self, sample_text):
        """Test a custom config changes which kinds are written on one line."""
        set_default_config(FormatConfig(single_line_kinds=frozenset()))
        text = serialize(deserialize(sample_text))
        assert '{isa = PBXBuildFile;' not in text
        assert '\t\t\tisa = PBXBuildFile;\n' in text


class TestComments:
    """Tests for the comments written after references."""

    def test_unnamed_main_group_has_no_comment(self, project):
        """Test the main group is written without a comment."""
        uuid = project.main_group.uuid
        text = serialize(project)
        assert f'\t\t\tmainGroup = {uuid};\n' in text
        assert f'\t\t{uuid} = {{\n' in text
        assert f'{uuid} /*' not in text

    def test_named_groups_keep_comments(self, project):
        """Test groups with a name or path are commented."""
        group = project.new_group('Sources', path='Sources')
        assert f'{group.uuid} /* Sources */' in serialize(project)

    def test_configuration_list_names_project(self, project):
        """Test the project configuration list comment uses the project name."""
        text = serialize(project)
        assert 'Build configuration list for PBXProject "Test" */' in text
        assert 'Project object" */' not in text

    def test_unnamed_graph_uses_project_object(self, sample_text):
        """Test graphs without a name fall back to the root display name."""
        graph = deserialize(sample_text)
        assert graph.name is None
        assert 'Build configuration list for PBXProject "Project object" */' in serialize(graph)

    def test_graph_name_from_argument(self, sample_text):
        """Test a name passed to the graph is used in comments."""
        graph = deserialize(sample_text, ObjectGraph(name='Other'))
        assert 'Build configuration list for PBXProject "Other" */' in serialize(graph)

    def test_target_configuration_list_names_target(self, sample_text):
        """Test lists owned by targets use the target name."""
        text = serialize(deserialize(sample_text, path=SAMPLE))
        assert 'Build configuration list for PBXNativeTarget "App" */' in text


class TestLoading:
    """Tests for deserialize() semantics."""

    def test_structure(self, sample_text):
        """Test references are resolved into nodes."""
        graph = deserialize(sample_text)
        root = graph.root_object
        assert root.isa == 'PBXProject'
        assert root['mainGroup']['children'][0]['path'] == 'main.m'
        target = root['targets'][0]
        build_file = target['buildPhases'][0]['files'][0]
        assert build_file['fileRef'] is root['mainGroup']['children'][0]
        assert graph.object_version == '46'
        assert graph.archive_version == '1'
        assert graph.classes == {}

    def test_no_defaults_back_filled(self, sample_text):
        """Test attributes absent from the document stay absent."""
        graph = deserialize(sample_text)
        reference = graph.find('F00000000000000000000001')
        assert reference.to_plist() == {
            'isa': 'PBXFileReference',
            'lastKnownFileType': 'sourcecode.c.objc',
            'path': 'main.m',
            'sourceTree': '<group>',
        }
        assert 'includeInIndex' not in reference
        assert 'developmentRegion' not in graph.root_object

    def test_referrers_are_indexed(self, sample_text):
        """Test the reverse index is built on load."""
        graph = deserialize(sample_text)
        reference = graph.find('F00000000000000000000001')
        assert sorted(node.isa for node in reference.referrers) == ['PBXBuildFile', 'PBXGroup']

    def test_unreachable_objects_are_dropped_but_reserved(self, caplog):
        """Test orphans are not registered and their uuids are not reused."""
        text = minimal_document(
            '900000000000000000000001 = {isa = PBXProject; mainGroup = A00000000000000000000001;};'
            'A00000000000000000000001 = {isa = PBXGroup; children = ();};'
            'B00000000000000000000009 = {isa = PBXGroup; children = ();};'
        )
        with caplog.at_level(logging.WARNING, logger='pbxgraph.serializer'):
            graph = deserialize(text)
        assert graph.find('B00000000000000000000009') is None
        assert 'B00000000000000000000009' in graph.generated_uuids
        assert 'unreachable' in caplog.text

    def test_unknown_attributes_are_kept(self, caplog):
        """Test attributes the schema lacks survive a round trip."""
        text = minimal_document(
            '900000000000000000000001 = {isa = PBXProject; mainGroup = A00000000000000000000001;};'
            'A00000000000000000000001 = {isa = PBXGroup; children = (); futureKey = "some value";};'
        )
        with caplog.at_level(logging.WARNING, logger='pbxgraph.serializer'):
            graph = deserialize(text)
        assert graph.find('A00000000000000000000001')['futureKey'] == 'some value'
        assert 'futureKey = "some value";' in serialize(graph)
        assert 'futureKey' in caplog.text

    def test_circular_target_dependencies(self):
        """Test projects with mutually dependent targets load."""
        text = minimal_document(
            '900000000000000000000001 = {isa = PBXProject; targets = (D00000000000000000000001, D00000000000000000000002);};'
            'D00000000000000000000001 = {isa = PBXNativeTarget; name = A; dependencies = (C00000000000000000000001);};'
            'D00000000000000000000002 = {isa = PBXNativeTarget; name = B; dependencies = (C00000000000000000000002);};'
            'C00000000000000000000001 = {isa = PBXTargetDependency; target = D00000000000000000000002;};'
            'C00000000000000000000002 = {isa = PBXTargetDependency; target = D00000000000000000000001;};'
        )
        graph = deserialize(text)
        first, second = graph.root_object['targets']
        assert first['dependencies'][0]['target'] is second
        assert second['dependencies'][0]['target'] is first
        assert serialize(deserialize(serialize(graph))) == serialize(graph)

    def test_load_into_non_empty_graph_rejected(self, project, sample_text):
        """Test documents only load into empty graphs."""
        with pytest.raises(ValueError):
            deserialize(sample_text, project)

    def test_load_into_given_graph(self, sample_text):
        """Test an explicit empty graph is populated."""
        graph = ObjectGraph(seed=3)
        assert deserialize(sample_text, graph) is graph
        assert len(graph.objects) == 10


class TestLoadErrors:
    """Tests for the load error taxonomy."""

    def test_merge_conflict(self, sample_text):
        """Test conflict markers abort loading."""
        lines = sample_text.splitlines(keepends=True)
        lines.insert(5, '<<<<<<< HEAD\n')
        with pytest.raises(MergeConflictDetected) as info:
            deserialize(''.join(lines), path='Conflicted.xcodeproj/project.pbxproj')
        assert info.value.path == 'Conflicted.xcodeproj/project.pbxproj'

    def test_character_reference_out_of_range(self, sample_text):
        """Test a reference past the Unicode range raises MalformedDocument."""
        text = sample_text.replace('path = main.m;', 'path = "&#99999999;.m";')
        with pytest.raises(MalformedDocument) as info:
            deserialize(text, path='Sample.xcodeproj/project.pbxproj')
        assert info.value.path == 'Sample.xcodeproj/project.pbxproj'

    def test_merge_conflict_with_crlf(self, sample_text):
        """Test bare markers are found in documents with CRLF line endings."""
        lines = sample_text.splitlines(keepends=True)
        lines.insert(5, '=======\n')
        with pytest.raises(MergeConflictDetected):
            deserialize(''.join(lines).replace('\n', '\r\n'))

    def test_dangling_reference(self):
        """Test a reference to a missing object raises with details."""
        text = minimal_document(
            '900000000000000000000001 = {isa = PBXProject; mainGroup = A00000000000000000000001;};'
        )
        with pytest.raises(DanglingReference) as info:
            deserialize(text, path='x.pbxproj')
        assert info.value.uuid == 'A00000000000000000000001'
        assert info.value.owner == '900000000000000000000001'
        assert info.value.attribute == 'mainGroup'
        assert info.value.path == 'x.pbxproj'

    def test_dangling_root(self):
        """Test a root uuid absent from objects raises."""
        with pytest.raises(DanglingReference):
            deserialize(minimal_document('', root='FFFFFFFFFFFFFFFFFFFFFFFF'))

    @pytest.mark.parametrize('text', [
        '(a, b)',
        '{rootObject = X;}',
        '{objects = {}; }',
        '{objects = (); rootObject = X;}',
        minimal_document('900000000000000000000001 = {isa = PBXUnknownThing;};'),
        minimal_document('900000000000000000000001 = {name = x;};'),
        minimal_document('900000000000000000000001 = {isa = PBXProject; targets = A;};'),
        minimal_document('900000000000000000000001 = {isa = PBXProject; mainGroup = (A);};'),
        minimal_document('900000000000000000000001 = {isa = PBXProject; projectReferences = (A);};'),
        '{objects = {',
    ])
    def test_malformed(self, text):
        """Test shape errors raise MalformedDocument."""
        with pytest.raises(MalformedDocument):
            deserialize(text, path='bad.pbxproj')


class TestSnapshots:
    """Tests for the dictionary and tree forms."""

    def test_to_plist(self, sample_text):
        """Test the dictionary form uses uuids for references."""
        graph = deserialize(sample_text)
        plist = to_plist(graph)
        assert plist['rootObject'] == '900000000000000000000001'
        assert plist['objects']['A00000000000000000000001'] == {
            'isa': 'PBXGroup',
            'children': ['F00000000000000000000001'],
            'sourceTree': '<group>',
        }
        assert set(plist) == {'archiveVersion', 'classes', 'objectVersion', 'objects', 'rootObject'}

    def test_tree_hash_expands_references(self, sample_text):
        """Test references become nested dictionaries."""
        tree = deserialize(sample_text).to_tree_hash()
        main_group = tree['rootObject']['mainGroup']
        assert main_group == {
            'displayName': 'Main Group',
            'isa': 'PBXGroup',
            'children': [{
                'displayName': 'main.m',
                'isa': 'PBXFileReference',
                'lastKnownFileType': 'sourcecode.c.objc',
                'path': 'main.m',
                'sourceTree': '<group>',
            }],
            'sourceTree': '<group>',
        }
        assert 'objects' not in tree

    def test_tree_hash_marks_cycles(self, project):
        """Test a back-edge is rendered as a cycle marker."""
        proxy = project.create('PBXContainerItemProxy')
        proxy['containerPortal'] = project.root_object
        dependency = project.create('PBXTargetDependency')
        dependency['targetProxy'] = proxy
        target = project.create('PBXAggregateTarget')
        target['name'] = 'All'
        target['dependencies'].append(dependency)
        project.root_object['targets'].append(target)

        tree = project.to_tree_hash()
        portal = tree['rootObject']['targets'][0]['dependencies'][0]['targetProxy']['containerPortal']
        assert portal == {'displayName': 'Project object', 'isa': 'PBXProject', 'cycle': True}

    def test_node_tree_hash(self, project):
        """Test a single node's snapshot."""
        group = project.new_group('Pods')
        assert group.to_tree_hash() == {
            'displayName': 'Pods',
            'isa': 'PBXGroup',
            'children': [],
            'name': 'Pods',
            'sourceTree': '<group>',
        }


def test_project_open_round_trip(tmp_path, sample_text):
    """Test a bundle saved by Project.open()/save() is unchanged."""
    bundle = tmp_path / 'Sample.xcodeproj'
    bundle.mkdir()
    (bundle / 'project.pbxproj').write_text(sample_text, encoding='utf-8')
    project = Project.open(bundle)
    project.save()
    assert (bundle / 'project.pbxproj').read_text(encoding='utf-8') == sample_text


def test_xcode_written_project_open_round_trip(tmp_path):
    """Test opening and saving an Xcode-written bundle changes nothing."""
    text = XCODE_WRITTEN.read_text(encoding='utf-8')
    bundle = tmp_path / 'Hello.xcodeproj'
    bundle.mkdir()
    (bundle / 'project.pbxproj').write_text(text, encoding='utf-8')
    project = Project.open(bundle)
    assert project.name == 'Hello'
    assert project.main_group.display_name == 'Main Group'
    project.save()
    assert (bundle / 'project.pbxproj').read_text(encoding='utf-8') == text
