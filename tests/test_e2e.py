"""End-to-end runs through main.py."""

import os
import shutil
import subprocess
import sys
from pathlib import Path

import numpy as np
import pytest

from fractalfarm.baseline import compute_reference
from fractalfarm.bmp import read_bmp
from fractalfarm.config import default_render_config

ROOT = Path(__file__).resolve().parents[1]
ENV = {
    **os.environ,
    "OMPI_ALLOW_RUN_AS_ROOT": "1",
    "OMPI_ALLOW_RUN_AS_ROOT_CONFIRM": "1",
    "SKIP_MLFLOW": "1",
    "PYTHONPATH": os.pathsep.join(filter(None, [str(ROOT / "src"), os.environ.get("PYTHONPATH")])),
}


def run_main(*args, timeout=120, cwd=ROOT):
    return subprocess.run(
        [sys.executable, str(ROOT / "main.py"), *args],
        cwd=cwd, env=ENV, capture_output=True, text=True, timeout=timeout,
    )


def test_local_render_writes_bmp(tmp_path):
    output = tmp_path / "render.bmp"
    result = run_main(
        "--local", "3", "--image-size", "90x70", "--chunk-size", "16",
        "--zoom", "30", "--center", "-0.5", "0", "--max-iter", "80", "--output", str(output),
    )
    assert result.returncode == 0, f"Run failed:\n{result.stdout}\n{result.stderr}"
    assert "Image written to" in result.stdout

    config = default_render_config(
        width=90, height=70, chunk_size=16, zoom=30.0, center=(-0.5, 0.0), max_iter=80
    )
    np.testing.assert_array_equal(read_bmp(output), compute_reference(config))


def test_rejects_invalid_canvas():
    result = run_main("--local", "1", "--chunk-size", "0")
    assert result.returncode != 0
    assert "ERROR" in result.stderr


def test_list_suites():
    result = run_main("--sweep", "configs/sweeps.yaml", "--list-suites")
    assert result.returncode == 0
    assert "TESTS:" in result.stdout


@pytest.mark.skipif(shutil.which("mpirun") is None, reason="mpirun not available")
def test_tests_suite():
    """Run TESTS suite end-to-end - should complete without errors."""
    result = run_main("--sweep", "configs/sweeps.yaml", "--suite", "TESTS", timeout=600)
    assert result.returncode == 0, f"Suite failed:\n{result.stdout}\n{result.stderr}"


def test_negative_center_from_cli(tmp_path):
    output = tmp_path / "view.bmp"
    result = run_main(
        "--local", "1", "--image-size", "24x16", "--chunk-size", "8", "--max-iter", "30",
        "--center", "-1.18", "-0.30", "--output", str(output),
    )
    assert result.returncode == 0, f"Run failed:\n{result.stdout}\n{result.stderr}"

    config = default_render_config(
        width=24, height=16, chunk_size=8, max_iter=30, center=(-1.18, -0.30)
    )
    np.testing.assert_array_equal(read_bmp(output), compute_reference(config))


def test_default_run_writes_default_bmp(tmp_path):
    result = run_main(
        "--local", "2", "--image-size", "20x20", "--chunk-size", "10", "--max-iter", "20",
        cwd=tmp_path,
    )
    assert result.returncode == 0, f"Run failed:\n{result.stdout}\n{result.stderr}"
    assert "Image written to" in result.stdout
    assert read_bmp(tmp_path / "fractal.bmp").shape == (20, 20, 3)
