"""
Pytest configuration and fixtures for rigkit tests.

External scenes are faked with SimpleNamespace objects shaped like the
pyassimp object model, so no native Assimp library is needed.
"""

from types import SimpleNamespace

import numpy as np
import pytest
import torch


# =============================================================================
# Fake Scene Builders
# =============================================================================

def translation(x: float, y: float, z: float) -> np.ndarray:
    """4x4 translation matrix."""
    m = np.eye(4, dtype=np.float32)
    m[:3, 3] = (x, y, z)
    return m


def rotation_z(degrees: float) -> np.ndarray:
    """4x4 rotation about +Z."""
    a = np.radians(degrees)
    m = np.eye(4, dtype=np.float32)
    m[0, 0], m[0, 1] = np.cos(a), -np.sin(a)
    m[1, 0], m[1, 1] = np.sin(a), np.cos(a)
    return m


class FakeScene:
    """Factory for pyassimp-shaped scene objects."""

    translation = staticmethod(translation)
    rotation_z = staticmethod(rotation_z)

    @staticmethod
    def node(name, matrix=None, children=()):
        return SimpleNamespace(
            name=name,
            transformation=np.eye(4, dtype=np.float32) if matrix is None else matrix,
            children=list(children),
        )

    @staticmethod
    def bone(name, weights=(), offset=None):
        return SimpleNamespace(
            name=name,
            weights=[SimpleNamespace(vertexid=v, weight=w) for v, w in weights],
            offsetmatrix=np.eye(4, dtype=np.float32) if offset is None else offset,
        )

    @staticmethod
    def mesh(vertices, faces, bones=(), normals=None, uvs=None, name='', materialindex=0):
        vertices = np.asarray(vertices, dtype=np.float32)
        texturecoords = None
        if uvs is not None:
            uvs = np.asarray(uvs, dtype=np.float32)
            texturecoords = [np.concatenate([uvs, np.zeros((len(uvs), 1), dtype=np.float32)], axis=1)]
        return SimpleNamespace(
            name=name,
            vertices=vertices,
            normals=normals,
            texturecoords=texturecoords,
            faces=[SimpleNamespace(indices=list(f)) for f in faces],
            materialindex=materialindex,
            bones=list(bones),
        )

    @staticmethod
    def vec_key(time, value):
        x, y, z = value
        return SimpleNamespace(time=time, value=SimpleNamespace(x=x, y=y, z=z))

    @staticmethod
    def quat_key(time, value):
        w, x, y, z = value
        return SimpleNamespace(time=time, value=SimpleNamespace(w=w, x=x, y=y, z=z))

    @staticmethod
    def channel(nodename, positions=(), rotations=(), scales=()):
        return SimpleNamespace(
            nodename=nodename,
            positionkeys=[FakeScene.vec_key(t, v) for t, v in positions],
            rotationkeys=[FakeScene.quat_key(t, v) for t, v in rotations],
            scalingkeys=[FakeScene.vec_key(t, v) for t, v in scales],
        )

    @staticmethod
    def animation(name, duration, tickspersecond, channels=()):
        return SimpleNamespace(
            name=name,
            duration=duration,
            tickspersecond=tickspersecond,
            channels=list(channels),
        )

    @staticmethod
    def scene(meshes=(), rootnode=None, animations=()):
        return SimpleNamespace(
            meshes=list(meshes),
            rootnode=rootnode,
            animations=list(animations),
        )


@pytest.fixture
def fake():
    """Fake scene factory."""
    return FakeScene


# =============================================================================
# Shared Scenes
# =============================================================================

@pytest.fixture
def rigged_scene(fake):
    """
    Root(non-bone, +z) -> Spine(+y) -> Head(+y), one triangle mesh skinned
    to Spine and Head, and a 2 second clip at 10 ticks per second.
    """
    head = fake.node('Head', translation(0, 1, 0))
    spine = fake.node('Spine', translation(0, 1, 0), [head])
    root = fake.node('Root', translation(0, 0, 1), [spine])

    mesh = fake.mesh(
        vertices=[[0, 1, 1], [0, 2, 1], [1, 2, 1]],
        faces=[[0, 1, 2]],
        normals=np.array([[0, 0, 1]] * 3, dtype=np.float32),
        uvs=[[0.0, 0.0], [0.0, 1.0], [1.0, 0.25]],
        name='Body',
        bones=[
            fake.bone('Spine', [(0, 1.0), (1, 0.5)], offset=translation(0, -1, -1)),
            fake.bone('Head', [(1, 0.5), (2, 1.0)], offset=translation(0, -2, -1)),
        ],
    )

    wave = fake.animation('Wave', duration=20.0, tickspersecond=10.0, channels=[
        fake.channel('Spine', positions=[(0, (0, 1, 0)), (10, (0, 2, 0)), (20, (0, 1, 0))]),
        fake.channel('Head', rotations=[(0, (1, 0, 0, 0)), (20, (0.7071068, 0, 0, 0.7071068))]),
    ])

    return fake.scene(meshes=[mesh], rootnode=root, animations=[wave])


@pytest.fixture
def rigged_model(rigged_scene):
    """ModelData imported from `rigged_scene`."""
    from rigkit.importer import ModelImporter
    return ModelImporter().import_scene(rigged_scene, name='rigged')


@pytest.fixture
def cpu_device():
    """Force CPU device for consistent testing."""
    return torch.device('cpu')
