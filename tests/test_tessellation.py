"""Tests for the Voronoi tessellation, outer boundary and mesh generators."""

from __future__ import annotations

import numpy as np
import pytest

from mmhydro.tessellation.mesh_generator import cartesian_mesh, perturbed_cartesian_mesh
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh

# ============================================================
# Outer boundary
# ============================================================


class TestSquareBox:
    def test_inverted_box_rejected(self):
        with pytest.raises(ValueError, match="must exceed"):
            SquareBox((1.0, 0.0), (0.0, 1.0))

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError, match="boundary kind"):
            SquareBox(x_kind="reflective")

    def test_contains_with_margin(self, unit_box):
        assert unit_box.contains([0.5, 0.5])
        assert not unit_box.contains([1.2, 0.5])
        assert not unit_box.contains([0.02, 0.5], margin=0.05)

    def test_mirror_image(self, unit_box):
        img = unit_box.image(np.array([[0.2, 0.3]]), (1, 0))
        np.testing.assert_allclose(img, [[1.8, 0.3]])

    def test_periodic_image_and_wrap(self, periodic_box):
        img = periodic_box.image(np.array([[0.2, 0.3]]), (-1, 1))
        np.testing.assert_allclose(img, [[-0.8, 1.3]])
        np.testing.assert_allclose(periodic_box.wrap([1.1, -0.25]), [0.1, 0.75])

    def test_periodic_offsets(self, unit_box, periodic_box):
        assert len(unit_box.periodic_offsets()) == 1
        offsets = periodic_box.periodic_offsets()
        assert len(offsets) == 9
        np.testing.assert_array_equal(offsets[0], [0.0, 0.0])


class TestMeshGenerator:
    def test_cartesian_points(self):
        pts = cartesian_mesh(2, 2, (0.0, 0.0), (1.0, 1.0))
        np.testing.assert_allclose(pts, [[0.25, 0.25], [0.75, 0.25], [0.25, 0.75], [0.75, 0.75]])

    def test_perturbation_is_reproducible(self, unit_box):
        a = perturbed_cartesian_mesh(4, 4, unit_box, perturbation=0.2, seed=7)
        b = perturbed_cartesian_mesh(4, 4, unit_box, perturbation=0.2, seed=7)
        np.testing.assert_array_equal(a, b)

    def test_perturbation_out_of_range(self, unit_box):
        with pytest.raises(ValueError):
            perturbed_cartesian_mesh(4, 4, unit_box, perturbation=0.5)


# ============================================================
# Tessellation
# ============================================================


class TestVoronoiMesh:
    def test_volumes_fill_the_box(self, mesh):
        assert mesh.point_count == 36
        assert mesh.volumes.sum() == pytest.approx(1.0, rel=1e-10)
        assert np.all(mesh.volumes > 0.0)

    def test_centroids_inside_cells(self, mesh):
        for i in range(mesh.point_count):
            cm = mesh.cell_cm(i)
            assert mesh.outer.contains(cm)

    def test_neighbors_are_symmetric(self, mesh):
        for i in range(mesh.point_count):
            for j in mesh.real_neighbors(i):
                assert i in mesh.real_neighbors(j)

    def test_ghosts_are_images_of_real_points(self, mesh):
        assert mesh.total_points > mesh.point_count
        for g in range(mesh.point_count, mesh.total_points):
            assert mesh.is_ghost(g)
            assert 0 <= mesh.original_index(g) < mesh.point_count
            assert not mesh.is_periodic_ghost(g)
            assert mesh.ghost_shift(g) != (0, 0)

    def test_mirror_ghost_position(self, mesh, unit_box):
        for g in range(mesh.point_count, mesh.total_points):
            shift = mesh.ghost_shift(g)
            orig = mesh.mesh_point(mesh.original_index(g))
            expected = unit_box.image(orig[None, :], shift)[0]
            np.testing.assert_allclose(mesh.mesh_point(g), expected)

    def test_periodic_mesh(self, periodic_box):
        points = perturbed_cartesian_mesh(5, 5, periodic_box, perturbation=0.1, seed=2)
        tess = VoronoiMesh(points, periodic_box)
        assert tess.volumes.sum() == pytest.approx(1.0, rel=1e-10)
        for g in range(tess.point_count, tess.total_points):
            assert tess.is_periodic_ghost(g)

    def test_too_few_points(self, unit_box):
        with pytest.raises(ValueError, match="at least"):
            VoronoiMesh(np.array([[0.2, 0.2], [0.8, 0.3], [0.4, 0.7]]), unit_box)

    def test_point_outside_box(self, unit_box):
        pts = perturbed_cartesian_mesh(3, 3, unit_box, seed=0)
        pts[0] = [1.5, 0.5]
        with pytest.raises(ValueError, match="outside"):
            VoronoiMesh(pts, unit_box)

    def test_insert_points(self, mesh):
        new = mesh.insert_points(np.array([[0.51, 0.49]]))
        assert list(new) == [36]
        assert mesh.point_count == 37
        np.testing.assert_allclose(mesh.mesh_point(36), [0.51, 0.49])
        assert mesh.volumes.sum() == pytest.approx(1.0, rel=1e-10)

    def test_remove_points_compacts_indices(self, mesh):
        before = mesh.mesh_points
        remap = mesh.remove_points([0, 7])
        assert mesh.point_count == 34
        assert remap[0] == -1 and remap[7] == -1
        assert remap[1] == 0 and remap[8] == 6
        np.testing.assert_array_equal(mesh.mesh_point(int(remap[20])), before[20])
        assert mesh.volumes.sum() == pytest.approx(1.0, rel=1e-10)

    def test_width(self, mesh):
        i = 14
        assert mesh.width(i) == pytest.approx(np.sqrt(mesh.volume(i) / np.pi))
