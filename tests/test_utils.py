import pytest
import torch
import numpy as np
from pathlib import Path

from rbf_surface.exceptions import ConfigurationError, InvalidInputError
from rbf_surface.models.point_set import PointSet
from rbf_surface.models.implicit_function import ImplicitFunctionEvaluator, ResidualReport
from rbf_surface.models.reconstruction_session import ReconstructionSession
from rbf_surface.utils.config import default_config, load_config, merge_config
from rbf_surface.utils.data_loader import (
    PointCloudLoader,
    denormalize_points,
    load_point_cloud,
    normalize_points,
    parse_point_records
)
from rbf_surface.utils.mesh import SurfaceMesh, delaunay_surface_triangles, triangulate
from rbf_surface.utils.metrics import ReconstructionMetrics, compute_chamfer_distance, compute_f_score
from rbf_surface.utils.visualization import ReconstructionVisualizer


class TestDataLoader:
    """Тесты для загрузки облаков точек"""

    @pytest.fixture
    def xyz_file(self, tmp_path):
        """Текстовый файл с точками и нормалями"""
        lines = [
            "# sample cloud",
            "0.0 0.0 0.0 0.0 0.0 1.0",
            "",
            "2.0 4.0 6.0 1.0 0.0 0.0",
            "not a point",
            "1.0 2.0",
            "1.0 1.0 3.0 0.0 1.0 0.0",
        ]
        path = tmp_path / "cloud.xyz"
        path.write_text("\n".join(lines))
        return path

    def test_parse_point_records(self):
        records = parse_point_records([
            "1 2 3",
            "# comment",
            "4 5 6 0 0 1",
            "7 8",
            "a b c"
        ])

        assert records == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0, 0.0, 0.0, 1.0]]

    def test_load_text_point_cloud(self, xyz_file):
        points = load_point_cloud(xyz_file)

        assert len(points) == 3
        assert points.has_normals
        np.testing.assert_array_equal(points.coordinates[1], [2.0, 4.0, 6.0])
        np.testing.assert_array_equal(points.normals[2], [0.0, 1.0, 0.0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_point_cloud(tmp_path / "missing.xyz")

    def test_normalize_points(self, xyz_file):
        points = load_point_cloud(xyz_file)
        normalized, params = normalize_points(points, return_params=True)

        coords = normalized.coordinates
        np.testing.assert_allclose(coords.min(axis=0), [-1.0, -1.0, -1.0])
        np.testing.assert_allclose(coords.max(axis=0), [1.0, 1.0, 1.0])
        np.testing.assert_array_equal(normalized.normals, points.normals)

        restored = denormalize_points(coords, params)
        np.testing.assert_allclose(restored, points.coordinates)

    def test_normalize_degenerate_axis(self):
        points = PointSet([[0.0, 5.0, 1.0], [2.0, 5.0, 3.0]])
        normalized = normalize_points(points)

        np.testing.assert_allclose(normalized.coordinates[:, 1], [0.0, 0.0])
        np.testing.assert_allclose(normalized.coordinates[:, 0], [-1.0, 1.0])

    def test_normalize_empty(self):
        points = PointSet(np.empty((0, 3)))
        assert len(normalize_points(points)) == 0

    def test_loader_subsample_preserves_order(self, tmp_path):
        coords = np.arange(30, dtype=np.float64).reshape(10, 3)
        path = tmp_path / "cloud.txt"
        np.savetxt(path, coords)

        loader = PointCloudLoader(normalize=False, max_points=4, seed=1)
        points = loader.load(path)

        assert len(points) == 4
        first_column = points.coordinates[:, 0]
        assert np.all(np.diff(first_column) > 0)

    def test_loader_normalizes(self, xyz_file):
        loader = PointCloudLoader(normalize=True)
        points = loader.load(xyz_file)

        assert loader.normalization is not None
        assert np.all(np.abs(points.coordinates) <= 1.0)

    def test_loader_invalid_max_points(self):
        with pytest.raises(ValueError):
            PointCloudLoader(max_points=0)

    def test_loaded_cloud_reconstructs(self, xyz_file):
        points = PointCloudLoader(normalize=True).load(xyz_file)
        session = ReconstructionSession(points)

        report = session.residual_report()
        assert report.total_error < 1e-6

    def test_load_ply_point_cloud(self, tmp_path):
        o3d = pytest.importorskip("open3d")

        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(np.eye(3))
        path = tmp_path / "cloud.ply"
        o3d.io.write_point_cloud(str(path), pcd)

        points = load_point_cloud(path)
        assert len(points) == 3
        np.testing.assert_allclose(points.coordinates, np.eye(3))


class TestMetrics:
    """Тесты для метрик реконструкции"""

    @pytest.fixture
    def sample_point_clouds(self):
        points1 = torch.tensor([
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0]
        ], dtype=torch.float64)

        points2 = points1 + 0.1
        return points1, points2

    def test_chamfer_distance(self, sample_point_clouds):
        points1, points2 = sample_point_clouds

        chamfer_dist = compute_chamfer_distance(points1, points2)

        assert isinstance(chamfer_dist, float)
        assert 0 < chamfer_dist < 1.0
        assert compute_chamfer_distance(points1, points1) == 0.0

    def test_chamfer_distance_empty(self):
        assert compute_chamfer_distance(np.empty((0, 3)), np.eye(3)) == float('inf')

    def test_f_score(self, sample_point_clouds):
        points1, points2 = sample_point_clouds

        assert compute_f_score(points1, points1, threshold=0.01) == 1.0
        assert compute_f_score(points1, points2, threshold=0.01) == 0.0
        assert 0.0 <= compute_f_score(points1, points2, threshold=0.5) <= 1.0

    def test_residual_metrics_history(self):
        metrics = ReconstructionMetrics()
        report = ResidualReport(values=np.array([1e-9, -2e-9]), total_error=3e-9, max_error=2e-9)

        for _ in range(3):
            result = metrics.compute_residual_metrics(report, surface_points=np.zeros((5, 3)))

        assert result['residual_total'] == pytest.approx(3e-9)
        assert result['residual_mean'] == pytest.approx(1.5e-9)
        assert result['surface_points'] == 5
        assert isinstance(result['surface_points'], int)
        assert len(metrics.metrics_history['residual_total']) == 3

        summary = metrics.get_summary()
        assert summary['residual_max'] == pytest.approx(2e-9)
        for history in metrics.metrics_history.values():
            assert len(history) == 0

    def test_complete_metrics(self, sample_point_clouds):
        points1, points2 = sample_point_clouds
        metrics = ReconstructionMetrics().compute_complete_metrics(points1, points2)

        for key in ['chamfer_distance', 'f_score_0.05', 'f_score_0.1']:
            assert key in metrics
            assert isinstance(metrics[key], float)


class TestMesh:
    """Тесты для меша"""

    @pytest.fixture
    def tetrahedron(self):
        return np.array([
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0]
        ])

    def test_delaunay_tetrahedron(self, tetrahedron):
        triangles = delaunay_surface_triangles(tetrahedron)

        assert triangles.shape == (4, 3)
        assert set(np.unique(triangles)) == {0, 1, 2, 3}

    def test_delaunay_too_few_points(self):
        triangles = delaunay_surface_triangles(np.eye(3))
        assert triangles.shape == (0, 3)

    def test_delaunay_coplanar_points(self):
        points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=np.float64)
        triangles = delaunay_surface_triangles(points)
        assert triangles.shape == (0, 3)

    def test_surface_mesh_is_immutable(self, tetrahedron):
        mesh = SurfaceMesh(vertices=tetrahedron, triangles=[[0, 1, 2]])

        with pytest.raises(ValueError):
            mesh.vertices[0, 0] = 1.0
        with pytest.raises(ValueError):
            mesh.triangles[0, 0] = 3

        np.testing.assert_array_equal(mesh.index_buffer(), [0, 1, 2])

    def test_surface_mesh_index_validation(self, tetrahedron):
        with pytest.raises(InvalidInputError):
            SurfaceMesh(vertices=tetrahedron, triangles=[[0, 1, 4]])
        with pytest.raises(InvalidInputError):
            SurfaceMesh(vertices=tetrahedron, triangles=[[-1, 1, 2]])

    def test_triangulate_default(self, tetrahedron):
        mesh = triangulate(tetrahedron)

        assert mesh.num_vertices == 4
        assert mesh.num_triangles == 4
        np.testing.assert_array_equal(mesh.vertices, tetrahedron)

    def test_triangulate_empty(self):
        mesh = triangulate(np.empty((0, 3)))

        assert mesh.num_vertices == 0
        assert mesh.num_triangles == 0


class TestConfig:
    """Тесты для конфигурации"""

    def test_default_config(self):
        config = default_config()

        assert config['reconstruction']['smoothing'] == 0.1
        assert config['extraction']['bounds'] == [-1.0, 1.0]

        config['reconstruction']['smoothing'] = 5.0
        assert default_config()['reconstruction']['smoothing'] == 0.1

    def test_merge_config(self):
        merged = merge_config(default_config(), {'reconstruction': {'smoothing': 0.3}})

        assert merged['reconstruction']['smoothing'] == 0.3
        assert merged['reconstruction']['pivot_tolerance'] == 1e-12
        assert merged['extraction']['grid_step'] == 0.05

    def test_merge_config_rejects_non_mapping(self):
        with pytest.raises(ConfigurationError):
            merge_config(default_config(), ['smoothing'])

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("extraction:\n  grid_step: 0.2\n  threshold: 0.05\n")

        config = load_config(path)

        assert config['extraction']['grid_step'] == 0.2
        assert config['extraction']['threshold'] == 0.05
        assert config['reconstruction']['smoothing'] == 0.1

    def test_load_empty_config(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(path) == default_config()

    def test_load_empty_section(self, tmp_path):
        path = tmp_path / "empty_section.yaml"
        path.write_text("reconstruction:\n  smoothing: 0.2\nextraction:\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_merge_config_rejects_scalar_section(self):
        with pytest.raises(ConfigurationError):
            merge_config(default_config(), {'extraction': None})
        with pytest.raises(ConfigurationError):
            merge_config(default_config(), {'reconstruction': 0.1})

    def test_load_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("reconstruction: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_repository_config_loads(self):
        path = Path(__file__).parent.parent / 'configs' / 'reconstruction_config.yaml'
        config = load_config(path)

        assert config['reconstruction']['smoothing'] == 0.1


class TestVisualization:
    """Тесты для экспорта результатов"""

    @pytest.fixture
    def evaluator(self):
        points = PointSet([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
        return ImplicitFunctionEvaluator(points, np.array([1.0, -1.0]))

    def test_disabled_visualizer_writes_nothing(self, tmp_path, evaluator):
        visualizer = ReconstructionVisualizer(tmp_path, enabled=False)

        assert visualizer.plot_residuals(evaluator.residual_report()) is None
        assert visualizer.plot_slice(evaluator) is None
        assert list(tmp_path.iterdir()) == []

    def test_plot_residuals(self, tmp_path, evaluator):
        visualizer = ReconstructionVisualizer(tmp_path)

        path = visualizer.plot_residuals(evaluator.residual_report())
        assert path.exists()

    def test_plot_slice(self, tmp_path, evaluator):
        visualizer = ReconstructionVisualizer(tmp_path)

        path = visualizer.plot_slice(evaluator, z=0.0, resolution=21)
        assert path.exists()

        with pytest.raises(ValueError):
            visualizer.plot_slice(evaluator, resolution=1)

    def test_save_point_cloud_and_mesh(self, tmp_path):
        pytest.importorskip("open3d")
        visualizer = ReconstructionVisualizer(tmp_path)

        points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype=np.float64)
        cloud_path = visualizer.save_point_cloud(points, "cloud.ply", color=[1, 0, 0])
        mesh_path = visualizer.save_mesh(triangulate(points), "mesh.ply")

        assert cloud_path.exists()
        assert mesh_path.exists()
