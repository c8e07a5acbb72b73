#!/usr/bin/env python3
"""
Скрипт для оценки результата реконструкции
"""

import sys
import json
import argparse
import logging
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from rbf_surface.exceptions import ReconstructionError
from rbf_surface.models.reconstruction_session import ReconstructionSession
from rbf_surface.utils.data_loader import PointCloudLoader, load_point_cloud
from rbf_surface.utils.metrics import ReconstructionMetrics


def setup_evaluation(session_path: str, surface_path: str = None):
    """Загрузка сохраненной сессии и (опционально) экспортированных точек поверхности"""
    logger = logging.getLogger(__name__)

    session = ReconstructionSession.load(session_path)

    if surface_path is not None:
        surface_points = load_point_cloud(surface_path).coordinates
    else:
        # Повторное извлечение с параметрами из конфигурации сессии
        surface_points = session.extract_surface()

    logger.info(f"Surface points: {len(surface_points)}")
    return session, surface_points


def evaluate_reconstruction(session, surface_points, reference_points, thresholds):
    """Оценка реконструкции относительно эталонного облака"""
    metrics_calculator = ReconstructionMetrics()

    report = session.residual_report()
    metrics = metrics_calculator.compute_residual_metrics(report, surface_points)
    metrics.update(metrics_calculator.compute_complete_metrics(
        surface_points, reference_points, f_score_thresholds=thresholds
    ))

    return metrics


def main():
    """Основная функция оценки"""
    parser = argparse.ArgumentParser(description='Evaluate an RBF surface reconstruction')
    parser.add_argument('--session', type=str, required=True, help='Path to saved session (.pth)')
    parser.add_argument('--surface', type=str, default=None, help='Exported surface points (.ply/.xyz)')
    parser.add_argument('--reference', type=str, default=None,
                        help='Reference point cloud (normalized like the input); defaults to session points')
    parser.add_argument('--thresholds', type=float, nargs='+', default=[0.05, 0.1],
                        help='F-Score distance thresholds')
    parser.add_argument('--results_dir', type=str, default='evaluation_results', help='Output directory')

    args = parser.parse_args()

    # Настройка
    results_dir = Path(args.results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    # Настройка логирования
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(results_dir / 'evaluation.log'),
            logging.StreamHandler()
        ]
    )
    logger = logging.getLogger(__name__)

    try:
        session, surface_points = setup_evaluation(args.session, args.surface)

        if args.reference is not None:
            data_config = session.config['data']
            reference_points = PointCloudLoader(
                normalize=data_config.get('normalize', True)
            ).load(args.reference).coordinates
        else:
            reference_points = session.point_set.coordinates

        logger.info("Starting evaluation...")
        metrics = evaluate_reconstruction(session, surface_points, reference_points, args.thresholds)

        # Сохранение результатов
        logger.info("Evaluation results:")
        for metric_name, value in metrics.items():
            logger.info(f"{metric_name}: {value:.6f}")

        with open(results_dir / 'metrics.json', 'w') as f:
            json.dump(metrics, f, indent=2)

        logger.info(f"Results saved to {results_dir}")

    except (ReconstructionError, FileNotFoundError) as e:
        logger.error(f"Evaluation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
