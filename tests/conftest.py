"""
Configuration file for pytest
"""

import sys
import random
from pathlib import Path

import pytest
import torch
import numpy as np

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))


def pytest_configure(config):
    """Configuration hook for pytest"""
    # Set random seeds for reproducibility
    torch.manual_seed(42)
    np.random.seed(42)
    random.seed(42)


@pytest.fixture(autouse=True)
def set_torch_seed():
    """Automatically set random seeds before each test"""
    torch.manual_seed(42)
    np.random.seed(42)
    random.seed(42)


@pytest.fixture
def unit_vectors():
    """Six axis-aligned unit vectors"""
    return np.array([
        [1.0, 0.0, 0.0],
        [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 0.0, -1.0]
    ])


@pytest.fixture
def random_points():
    """Random points in [-1, 1]^3"""
    rng = np.random.default_rng(0)
    return rng.uniform(-1.0, 1.0, size=(20, 3))
