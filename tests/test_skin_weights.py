"""
Tests for per-vertex skin weight resolution.
"""

from typing import List

import numpy as np
import pytest

from rigkit.core import SkinEntry, WEIGHT_SUM_TOLERANCE
from rigkit.importer import ImportReport, read_skin_entries, resolve_skin_weights


def _bones(names):
    return {name: i for i, name in enumerate(names)}


class TestResolveSkinWeights:
    """Tests for truncation, normalization and fallbacks."""

    def test_five_influences_keep_top_four(self):
        """[0.40, 0.30, 0.20, 0.05, 0.05] keeps the first four, renormalized."""
        names = ['B0', 'B1', 'B2', 'B3', 'B4']
        weights = [0.40, 0.30, 0.20, 0.05, 0.05]
        entries = [(name, [(0, w)]) for name, w in zip(names, weights)]

        indices, out = resolve_skin_weights(1, entries, _bones(names))

        assert list(indices[0]) == [0, 1, 2, 3]
        assert np.allclose(out[0], [0.421, 0.316, 0.211, 0.053], atol=1e-3)
        assert abs(out[0].sum() - 1.0) <= WEIGHT_SUM_TOLERANCE

    def test_ties_keep_encounter_order(self):
        """Equal weights are ranked by the order they were encountered."""
        names = ['E', 'D', 'C', 'B', 'A']
        entries = [(name, [(0, 0.2)]) for name in names]

        indices, out = resolve_skin_weights(1, entries, _bones(names))

        assert list(indices[0]) == [0, 1, 2, 3]
        assert np.allclose(out[0], 0.25)

    def test_no_influences_fall_back_to_bone_zero(self):
        """Unweighted vertices follow bone 0 rigidly."""
        indices, out = resolve_skin_weights(2, [('A', [(0, 1.0)])], _bones(['A', 'B']))
        assert list(indices[1]) == [0, 0, 0, 0]
        assert list(out[1]) == [1.0, 0.0, 0.0, 0.0]

    def test_near_zero_sum_falls_back(self):
        """A raw sum at or below the threshold uses the fallback."""
        report = ImportReport()
        indices, out = resolve_skin_weights(
            1, [('B', [(0, 0.0004)]), ('C', [(0, 0.0004)])], _bones(['A', 'B', 'C']), report=report
        )
        assert list(indices[0]) == [0, 0, 0, 0]
        assert list(out[0]) == [1.0, 0.0, 0.0, 0.0]
        assert len(report) == 1

    def test_partial_weights_normalized(self):
        """Weights summing to less than one are scaled up."""
        indices, out = resolve_skin_weights(1, [('A', [(0, 0.2)]), ('B', [(0, 0.2)])], _bones(['A', 'B']))
        assert list(indices[0][:2]) == [0, 1]
        assert np.allclose(out[0], [0.5, 0.5, 0.0, 0.0])

    def test_dangling_bone_skipped(self):
        """Influences of unknown bones are dropped with a warning."""
        report = ImportReport()
        entries = [('A', [(0, 0.5)]), ('Ghost', [(0, 0.5)]), ('B', [(0, 0.5)])]

        indices, out = resolve_skin_weights(1, entries, _bones(['A', 'B']), report=report, mesh_name='Body')

        assert list(indices[0][:2]) == [0, 1]
        assert np.allclose(out[0], [0.5, 0.5, 0.0, 0.0])
        assert len(report) == 1
        assert 'Ghost' in report.warnings[0]

    def test_indices_follow_name_table_not_mesh_order(self):
        """Bone slots refer to the skeleton's indices."""
        entries = [('Head', [(0, 1.0)])]
        indices, _ = resolve_skin_weights(1, entries, {'Hips': 0, 'Spine': 1, 'Head': 2})
        assert indices[0, 0] == 2

    def test_out_of_range_vertices_skipped(self):
        """Vertex ids past the end are ignored."""
        report = ImportReport()
        indices, out = resolve_skin_weights(1, [('A', [(0, 1.0), (7, 1.0)])], _bones(['A']), report=report)
        assert out.shape == (1, 4)
        assert len(report) == 1

    def test_rows_sum_to_one(self):
        """Random skin data always yields normalized rows or the fallback."""
        rng = np.random.default_rng(0)
        names = [f'B{i}' for i in range(8)]
        entries = []
        for name in names:
            vids = rng.choice(50, size=20, replace=False)
            entries.append((name, [(int(v), float(rng.random())) for v in vids]))

        _, out = resolve_skin_weights(50, entries, _bones(names))

        sums = out.sum(axis=1)
        assert np.all(np.abs(sums - 1.0) <= WEIGHT_SUM_TOLERANCE)

    def test_output_shapes_and_dtypes(self):
        """Four slots per vertex, int32 indices and float32 weights."""
        indices, out = resolve_skin_weights(3, [], {})
        assert indices.shape == (3, 4) and indices.dtype == np.int32
        assert out.shape == (3, 4) and out.dtype == np.float32


class TestReadSkinEntries:
    """Tests for reading skin data from external meshes."""

    def test_from_weight_objects(self, fake):
        """pyassimp-style weight objects are read."""
        mesh = fake.mesh([[0, 0, 0]] * 2, [], bones=[fake.bone('A', [(0, 0.25), (1, 0.75)])])
        assert read_skin_entries(mesh) == [('A', [(0, 0.25), (1, 0.75)])]

    def test_from_pairs(self, fake):
        """Plain (vertex_id, weight) pairs are read."""
        bone = fake.bone('A')
        bone.weights = [(3, 0.5)]
        mesh = fake.mesh([[0, 0, 0]], [], bones=[bone])
        assert read_skin_entries(mesh) == [('A', [(3, 0.5)])]

    def test_no_bones(self, fake):
        """Meshes without bones give no entries."""
        assert read_skin_entries(fake.mesh([[0, 0, 0]], [])) == []

    def test_entries_feed_resolver(self, fake):
        """Read entries are accepted by resolve_skin_weights as-is."""
        mesh = fake.mesh([[0, 0, 0]] * 2, [], bones=[fake.bone('A', [(0, 1.0)]), fake.bone('B', [(1, 2.0)])])
        entries: List[SkinEntry] = read_skin_entries(mesh)

        indices, weights = resolve_skin_weights(2, entries, _bones(['A', 'B']))

        assert list(indices[:, 0]) == [0, 1]
        assert np.allclose(weights[:, 0], 1.0)
