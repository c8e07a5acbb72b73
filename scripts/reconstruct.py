#!/usr/bin/env python3
"""
Скрипт для реконструкции поверхности по облаку точек
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Добавляем путь к пакету для импорта модулей
sys.path.append(str(Path(__file__).parent.parent))

from rbf_surface.exceptions import ReconstructionError
from rbf_surface.models.reconstruction_session import ReconstructionSession
from rbf_surface.utils.config import load_config, default_config, merge_config
from rbf_surface.utils.data_loader import PointCloudLoader
from rbf_surface.utils.metrics import ReconstructionMetrics
from rbf_surface.utils.visualization import ReconstructionVisualizer


def setup_logging(log_dir: Path, level: str = "INFO"):
    """Настройка системы логирования"""
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / 'reconstruction.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    return logging.getLogger(__name__)


def parse_args():
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(description='Reconstruct an implicit surface from a point cloud')

    parser.add_argument('input', type=str,
                       help='Path to point cloud (.xyz, .txt, .pts, .ply, .pcd)')
    parser.add_argument('--config', type=str, default=None,
                       help='Path to configuration file')
    parser.add_argument('--results_dir', type=str, default='results',
                       help='Path to results directory')
    parser.add_argument('--smoothing', type=float, default=None,
                       help='Multiquadric smoothing constant')
    parser.add_argument('--grid_step', type=float, default=None,
                       help='Grid step for surface extraction')
    parser.add_argument('--threshold', type=float, default=None,
                       help='Surface threshold |f(x)| < threshold')
    parser.add_argument('--max_points', type=int, default=None,
                       help='Random subsample size')
    parser.add_argument('--print_residuals', action='store_true',
                       help='Print f(p) for every input point')
    parser.add_argument('--no_mesh', action='store_true',
                       help='Skip triangulation')
    parser.add_argument('--no_plots', action='store_true',
                       help='Skip PLY/PNG export')
    parser.add_argument('--debug', action='store_true',
                       help='Enable debug logging')

    return parser.parse_args()


def build_config(args) -> dict:
    """Конфигурация из файла с переопределениями из командной строки"""
    config = load_config(args.config) if args.config else default_config()

    overrides = {'reconstruction': {}, 'extraction': {}, 'data': {}}
    if args.smoothing is not None:
        overrides['reconstruction']['smoothing'] = args.smoothing
    if args.grid_step is not None:
        overrides['extraction']['grid_step'] = args.grid_step
    if args.threshold is not None:
        overrides['extraction']['threshold'] = args.threshold
    if args.max_points is not None:
        overrides['data']['max_points'] = args.max_points
    if args.debug:
        overrides['log_level'] = 'DEBUG'

    return merge_config(config, overrides)


def run_reconstruction(input_path: Path, config: dict, results_dir: Path, args) -> dict:
    """Полный цикл: загрузка, решение, извлечение, триангуляция, экспорт"""
    logger = logging.getLogger(__name__)
    data_config = config['data']

    loader = PointCloudLoader(
        normalize=data_config.get('normalize', True),
        max_points=data_config.get('max_points'),
        seed=data_config.get('seed', 42)
    )
    points = loader.load(input_path)

    logger.info("Solving RBF system...")
    session = ReconstructionSession(points, config)
    logger.info(f"Solved {session.num_points}x{session.num_points} system in {session.solve_time:.3f}s")

    report = session.residual_report(log=args.print_residuals)
    logger.info(f"Total error: {report.total_error:.6e}")

    mesh = None
    if args.no_mesh:
        surface_points = session.extract_surface()
    else:
        mesh = session.reconstruct_mesh()
        surface_points = mesh.vertices

    visualizer = ReconstructionVisualizer(results_dir, enabled=not args.no_plots)
    visualizer.save_point_cloud(points.coordinates, 'input_normalized.ply', color=[0.2, 0.4, 1.0])
    visualizer.save_point_cloud(surface_points, 'surface_points.ply', color=[1.0, 0.3, 0.2])
    if mesh is not None:
        visualizer.save_mesh(mesh, 'surface_mesh.ply')
    visualizer.plot_residuals(report)
    visualizer.plot_slice(session.evaluator, z=0.0, bounds=config['extraction']['bounds'])

    session.save(results_dir / 'session.pth')

    metrics_calculator = ReconstructionMetrics()
    metrics = session.diagnostics()
    metrics.update(metrics_calculator.compute_residual_metrics(report, surface_points))
    metrics.update(metrics_calculator.compute_complete_metrics(surface_points, points.coordinates))
    if mesh is not None:
        metrics['mesh_triangles'] = mesh.num_triangles

    return metrics


def main():
    """Основная функция реконструкции"""
    args = parse_args()

    results_dir = Path(args.results_dir)
    logger = setup_logging(results_dir, 'DEBUG' if args.debug else 'INFO')

    try:
        config = build_config(args)
        logging.getLogger().setLevel(getattr(logging, str(config.get('log_level', 'INFO')).upper(), logging.INFO))

        logger.info(f"Starting reconstruction of {args.input}")
        metrics = run_reconstruction(Path(args.input), config, results_dir, args)

        logger.info("Reconstruction results:")
        for metric_name, value in metrics.items():
            logger.info(f"{metric_name}: {value}")

        with open(results_dir / 'metrics.json', 'w') as f:
            json.dump(metrics, f, indent=2)

        logger.info(f"Results saved to {results_dir}")

    except (ReconstructionError, FileNotFoundError) as e:
        logger.error(f"Reconstruction failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
