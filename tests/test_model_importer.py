"""
Tests for the end-to-end import pipeline and the ModelData asset.
"""

import builtins
import dataclasses
import threading

import numpy as np
import pytest

from rigkit.assets import AssetMetadata, Bone, BoundingBox, Mesh, ModelData
from rigkit.core import EmptySceneError, ImportCancelled, SceneLoadError, SkeletonError, WEIGHT_SUM_TOLERANCE
from rigkit.importer import ModelImporter, build_mesh, check_assimp_available, load_model_data
from rigkit.utils import ImportConfig


class NativeLibraryMissing(BaseException):
    """Stands in for pyassimp's AssimpError, which derives from BaseException."""


def _fail_assimp_import(monkeypatch, error):
    """Make every `import pyassimp...` raise `error`."""
    real_import = builtins.__import__

    def fake_import(name, *args, **kwargs):
        if name == 'pyassimp' or name.startswith('pyassimp.'):
            raise error
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, '__import__', fake_import)


# =============================================================================
# Pipeline
# =============================================================================

class TestModelImporter:
    """Tests for converting fake pyassimp scenes."""

    def test_skeleton(self, rigged_model):
        """Non-bone root is folded away and bones are name-addressable."""
        assert rigged_model.bone_names == ['Spine', 'Head']
        assert list(rigged_model.parent_indices()) == [-1, 0]
        assert rigged_model.get_bone_index('Head') == 1
        assert rigged_model.get_bone_index('Root') is None
        assert rigged_model.has_skeleton

    def test_mesh_buffers(self, rigged_model):
        """Positions, normals, triangles and material are copied."""
        mesh = rigged_model.meshes[0]
        assert mesh.name == 'Body'
        assert mesh.vertex_count == 3
        assert mesh.triangle_count == 1
        assert list(mesh.indices) == [0, 1, 2]
        assert np.allclose(mesh.normals, [[0, 0, 1]] * 3)
        assert mesh.material_index == 0

    def test_uv_flip(self, rigged_model):
        """V is stored as 1 - v by default."""
        uvs = rigged_model.meshes[0].uvs
        assert np.allclose(uvs, [[0.0, 1.0], [0.0, 0.0], [1.0, 0.75]])

    def test_uv_flip_disabled(self, rigged_scene):
        """flip_uv_v=False keeps texture coordinates as authored."""
        model = ModelImporter(ImportConfig(flip_uv_v=False)).import_scene(rigged_scene)
        assert np.allclose(model.meshes[0].uvs[1], [0.0, 1.0])

    def test_skin_weights(self, rigged_model):
        """Every vertex's weights sum to one."""
        mesh = rigged_model.meshes[0]
        assert mesh.weights_normalized(WEIGHT_SUM_TOLERANCE)
        assert list(mesh.bone_indices[1][:2]) == [0, 1]
        assert np.allclose(mesh.bone_weights[1], [0.5, 0.5, 0, 0])
        assert list(mesh.bone_indices[2][:1]) == [1]

    def test_animations(self, rigged_model):
        """Clips are extracted with durations in seconds."""
        assert rigged_model.is_animated
        clip = rigged_model.animations.get('Wave')
        assert clip.duration == pytest.approx(2.0)
        assert set(clip.channel_names) == {'Spine', 'Head'}

    def test_no_warnings_for_clean_scene(self, rigged_model):
        """A well-formed scene imports without warnings."""
        assert rigged_model.import_warnings == ()

    def test_empty_scene(self, fake):
        """Scenes without meshes fail."""
        with pytest.raises(EmptySceneError):
            ModelImporter().import_scene(fake.scene(rootnode=fake.node('Root')))

    def test_cancelled(self, rigged_scene):
        """A set cancel event aborts the import."""
        event = threading.Event()
        event.set()
        with pytest.raises(ImportCancelled):
            ModelImporter().import_scene(rigged_scene, cancel_event=event)

    def test_static_mesh(self, fake):
        """Meshes without skin data are bound to bone 0 with no skeleton."""
        scene = fake.scene(meshes=[fake.mesh([[0, 0, 0], [1, 0, 0], [0, 1, 0]], [[0, 1, 2]])],
                           rootnode=fake.node('Root'))
        model = ModelImporter().import_scene(scene)
        assert not model.has_skeleton
        assert model.animations is None
        assert np.array_equal(model.meshes[0].bone_weights[:, 0], [1, 1, 1])

    def test_defaults_for_missing_attributes(self, fake):
        """Missing name, normals and UVs get defaults."""
        scene = fake.scene(meshes=[fake.mesh([[0, 0, 0], [1, 0, 0], [0, 1, 0]], [[0, 1, 2]])])
        mesh = ModelImporter().import_scene(scene).meshes[0]
        assert mesh.name == 'Mesh_0'
        assert np.allclose(mesh.normals, [[0, 1, 0]] * 3)
        assert np.allclose(mesh.uvs, 0.0)

    def test_bad_faces_skipped(self, fake):
        """Quads and out-of-range faces are skipped and reported."""
        scene = fake.scene(meshes=[fake.mesh(
            [[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]],
            [[0, 1, 2], [0, 1, 2, 3], [1, 2, 9]],
        )])
        model = ModelImporter().import_scene(scene)
        assert model.meshes[0].triangle_count == 1
        assert len(model.import_warnings) == 2

    def test_dangling_bone_warning_surfaces(self, fake):
        """Per-item warnings end up on the ModelData."""
        mesh = fake.mesh([[0, 0, 0]], [], bones=[fake.bone('Hips', [(0, 1.0)]), fake.bone('Ghost', [(0, 1.0)])])
        scene = fake.scene(meshes=[mesh], rootnode=fake.node('Hips'))
        model = ModelImporter().import_scene(scene)
        assert model.bone_names == ['Hips']
        assert any('Ghost' in w for w in model.import_warnings)

    def test_scene_can_be_released(self, rigged_scene):
        """The model shares no buffers with the external scene."""
        model = ModelImporter().import_scene(rigged_scene)
        rigged_scene.meshes[0].vertices[0, 0] = 42.0
        assert model.meshes[0].positions[0, 0] == 0.0

    def test_load_missing_file(self, tmp_path):
        """Loading a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_model_data(tmp_path / 'missing.fbx')

    def test_assimp_check_never_raises(self):
        """Availability is reported as a bool whether or not pyassimp loads."""
        assert isinstance(check_assimp_available(), bool)

    @pytest.mark.parametrize("error", [
        ImportError("No module named 'pyassimp'"),
        NativeLibraryMissing("assimp library not found"),
    ])
    def test_unavailable_assimp_is_scene_load_error(self, tmp_path, monkeypatch, error):
        """Import-time failures of pyassimp surface as SceneLoadError."""
        _fail_assimp_import(monkeypatch, error)
        path = tmp_path / 'model.fbx'
        path.write_bytes(b'x')

        assert check_assimp_available() is False
        with pytest.raises(SceneLoadError):
            load_model_data(path)

    def test_interrupt_during_assimp_import_propagates(self, monkeypatch):
        """KeyboardInterrupt is never turned into an import failure."""
        _fail_assimp_import(monkeypatch, KeyboardInterrupt())
        with pytest.raises(KeyboardInterrupt):
            check_assimp_available()

    def test_build_mesh_numpy_faces(self, fake):
        """Faces given as an (F, 3) array are accepted."""
        mesh = fake.mesh([[0, 0, 0], [1, 0, 0], [0, 1, 0]], [])
        mesh.faces = np.array([[0, 1, 2]])
        assert build_mesh(mesh, 0, {}).triangle_count == 1


# =============================================================================
# ModelData
# =============================================================================

class TestModelData:
    """Tests for the immutable model asset."""

    def test_frozen(self, rigged_model):
        """Fields cannot be reassigned."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            rigged_model.name = 'other'

    def test_arrays_read_only(self, rigged_model):
        """Buffers cannot be written."""
        with pytest.raises(ValueError):
            rigged_model.meshes[0].positions[0, 0] = 1.0
        with pytest.raises(ValueError):
            rigged_model.bones[0].offset_matrix[0, 0] = 2.0

    def test_bone_map_read_only(self, rigged_model):
        """The name table cannot be modified."""
        with pytest.raises(TypeError):
            rigged_model.bone_name_to_index['Tail'] = 5

    def test_parent_order_enforced(self):
        """A parent index at or after its child is rejected."""
        bones = (Bone('A', 1, np.eye(4)), Bone('B', -1, np.eye(4)))
        with pytest.raises(SkeletonError):
            ModelData(name='bad', bones=bones)

    def test_totals_and_bounds(self, rigged_model):
        """Vertex and triangle totals and the union bounds."""
        assert rigged_model.total_vertex_count == 3
        assert rigged_model.total_triangle_count == 1
        assert np.allclose(rigged_model.bounds.minimum, [0, 1, 1])
        assert np.allclose(rigged_model.bounds.maximum, [1, 2, 1])

    def test_try_get_bind_transform(self, rigged_model):
        """Bind transforms decompose into position, rotation and scale."""
        bind = rigged_model.try_get_bind_transform('Spine')
        assert np.allclose(bind.position, [0, 1, 1])
        assert np.allclose(bind.rotation, [1, 0, 0, 0])
        assert np.allclose(bind.scale, [1, 1, 1])
        assert rigged_model.try_get_bind_transform('Tail') is None

    def test_metadata(self, rigged_model):
        """Preview metadata summarizes the model."""
        meta = AssetMetadata.from_model_data(rigged_model, 'assets/character.fbx')
        assert meta.name == 'character.fbx'
        assert meta.extension == '.fbx'
        assert meta.vertex_count == 3
        assert meta.bone_count == 2
        assert meta.animation_count == 1
        assert meta.to_dict()['bounds_max'] == [1.0, 2.0, 1.0]

    def test_mesh_validation(self):
        """Mismatched attribute lengths are rejected."""
        with pytest.raises(ValueError):
            Mesh('m', positions=np.zeros((3, 3)), normals=np.zeros((2, 3)), uvs=np.zeros((3, 2)), indices=[])
        with pytest.raises(ValueError):
            Mesh('m', positions=np.zeros((3, 3)), normals=np.zeros((3, 3)), uvs=np.zeros((3, 2)), indices=[0, 1, 5])

    def test_bounding_box_empty(self):
        """Empty point sets give a zero box."""
        box = BoundingBox.from_points(np.zeros((0, 3)))
        assert np.allclose(box.size, 0)
