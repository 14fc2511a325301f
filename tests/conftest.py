# tests/conftest.py
# Shared pytest setup: makes `import pbrshade` work from a fresh clone and registers markers
# Exists so tests run without a prior `pip install -e .`
# RELEVANT FILES: python/pbrshade/__init__.py, pyproject.toml
import sys
from pathlib import Path

import numpy as np
import pytest


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _ensure_python_path():
    pkg_dir = _repo_root() / "python"
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


_ensure_python_path()


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests that bake environment probes from panoramas")


@pytest.fixture
def head_on_camera():
    from pbrshade.camera import Camera

    return Camera.look_at((0.0, 0.0, 3.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0))


@pytest.fixture
def head_on_fragment():
    from pbrshade.shading import FragmentInput

    return FragmentInput(
        world_position=np.zeros(3, dtype=np.float32),
        normal=np.array([0.0, 0.0, 1.0], dtype=np.float32),
        uv0=np.array([0.5, 0.5], dtype=np.float32),
        tangent=np.array([1.0, 0.0, 0.0, 1.0], dtype=np.float32),
    )


@pytest.fixture(scope="session")
def small_brdf_lut():
    from pbrshade.envmap import generate_brdf_lut

    return generate_brdf_lut(16, 128)
