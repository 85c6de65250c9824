"""
Test the robust (Debevec) calibration.
"""

import numpy as np
import pytest
from pydantic import ValidationError

from RadiometricResponseTool import Capabilities
from RadiometricResponseTool.Dataset import Dataset
from RadiometricResponseTool.DebevecCalibration import DebevecCalibration
from RadiometricResponseTool.DebevecCalibrationConfig import DebevecCalibrationConfig
from RadiometricResponseTool.Exceptions import CalibrationError, MethodUnavailableError

from .conftest import make_dataset


def level_grid_dataset(exposures=(40,)):
    """64x64 images in which every intensity occurs 16 times."""
    dataset = Dataset()
    grid = (np.arange(64 * 64) % 256).astype(np.uint8).reshape(64, 64)
    for t in exposures:
        dataset.insert(t, grid)
    return dataset


class TestDebevecConfig:
    """Test the method specific settings."""

    def test_defaults(self):
        config = DebevecCalibrationConfig()
        assert config.min_samples_per_level == 5
        assert config.smoothing_lambda == 50.0

    @pytest.mark.parametrize("kwargs", [
        {"min_samples_per_level": 0},
        {"smoothing_lambda": 0.0},
        {"huber_scale": -1.0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            DebevecCalibrationConfig(**kwargs)


class TestAvailability:
    """Test behavior without the sparse solver."""

    def test_construction_fails_without_solver(self, monkeypatch):
        monkeypatch.setattr(Capabilities, "SOLVER_AVAILABLE", False)

        with pytest.raises(MethodUnavailableError, match="scipy"):
            DebevecCalibration()

    def test_construction_with_solver(self):
        assert Capabilities.solver_available()
        assert DebevecCalibration().method_name == "Debevec"


class TestPixelSelection:
    """Test the stratified choice of pixel locations."""

    def test_every_valid_level_covered(self):
        calibration = DebevecCalibration()
        locations, hist = calibration.select_pixels(level_grid_dataset())

        assert locations.size == 254 * 5
        assert np.all(hist[1:255] == 5)
        assert hist[0] == 0 and hist[255] == 0
        assert len(set(locations.tolist())) == locations.size

    def test_selection_starts_from_brightest_valid(self):
        calibration = DebevecCalibration()
        dataset = level_grid_dataset()
        locations, _ = calibration.select_pixels(dataset)

        first = dataset.get_images(40)[0].ravel()[locations[:5]]
        assert np.all(first == 254)

    def test_respects_min_samples(self):
        config = DebevecCalibrationConfig(min_samples_per_level=2,
                                          valid_pixel_range=(100, 200))
        calibration = DebevecCalibration(config=config)
        locations, hist = calibration.select_pixels(level_grid_dataset())

        assert locations.size == 101 * 2
        assert np.all(hist[100:201] == 2)
        assert hist[:100].sum() == 0

    def test_other_exposures_contribute_to_histogram(self):
        dataset = Dataset()
        dataset.insert(20, np.array([[200, 150]], dtype=np.uint8))
        dataset.insert(10, np.array([[100, 75]], dtype=np.uint8))
        config = DebevecCalibrationConfig(min_samples_per_level=1)

        locations, hist = DebevecCalibration(config=config).select_pixels(dataset)

        assert locations.tolist() == [0, 1]
        assert hist[200] == 1 and hist[100] == 1
        assert hist[150] == 1 and hist[75] == 1

    def test_collect_observations_skips_invalid(self):
        dataset = Dataset()
        dataset.insert(4, np.array([[255, 120]], dtype=np.uint8))
        dataset.insert(2, np.array([[200, 60]], dtype=np.uint8))

        calibration = DebevecCalibration()
        loc_idx, brightness, log_t = calibration.collect_observations(
            dataset, np.array([0, 1]))

        assert loc_idx.tolist() == [1, 0, 1]
        assert brightness.tolist() == [120, 200, 60]
        assert np.allclose(log_t, np.log([4, 2, 2]))


class TestCalibrate:
    """Test full calibration runs on synthetic data."""

    def test_gamma_camera(self, gamma_dataset):
        config = DebevecCalibrationConfig(smoothing_lambda=1.0,
                                          max_num_iterations=200)
        calibration = DebevecCalibration(config=config)
        response = calibration.calibrate(gamma_dataset)[:, 0]

        assert response.shape == (256,)
        assert np.all(np.diff(response) >= 0)
        assert response[255] == 1.0

        levels = np.arange(40, 241)
        error = np.log(response[levels]) - 2.2 * np.log(levels / 255.0)
        # Equal up to a constant factor
        assert np.max(np.abs(error - np.median(error))) < 0.15

    def test_linear_camera(self):
        irradiance = np.linspace(1.0, 12.0, 24 * 24).reshape(24, 24)
        dataset = make_dataset(irradiance, (10, 20, 40), lambda x: x / 2.0)
        config = DebevecCalibrationConfig(smoothing_lambda=1.0,
                                          max_num_iterations=200)
        response = DebevecCalibration(config=config).calibrate(dataset)[:, 0]

        levels = np.arange(20, 236)
        error = np.log(response[levels]) - np.log(levels)
        assert np.max(np.abs(error - np.median(error))) < 0.1

    def test_linear_camera_default_config(self):
        irradiance = np.linspace(1.0, 12.0, 24 * 24).reshape(24, 24)
        dataset = make_dataset(irradiance, (10, 20, 40), lambda x: x / 2.0)
        calibration = DebevecCalibration()
        response = calibration.calibrate(dataset)[:, 0]

        # Strong smoothing bends the dark end, the shape still holds
        levels = np.arange(20, 236)
        error = np.log(response[levels]) - np.log(levels)
        assert np.max(np.abs(error - np.median(error))) < 0.25
        assert calibration.summaries[0].iterations <= 30

    def test_cost_never_increases(self, gamma_dataset, monkeypatch):
        rows = []

        def record(self, iteration, residual, delta, extra=" "):
            rows.append((residual, delta))

        monkeypatch.setattr(DebevecCalibration, "print_iteration", record)
        config = DebevecCalibrationConfig(max_num_iterations=10)
        calibration = DebevecCalibration(config=config)
        calibration.calibrate(gamma_dataset)

        summary = calibration.summaries[0]
        assert summary.iterations == len(rows)
        assert summary.converged or summary.iterations == 10
        assert all(delta >= -1e-9 * (1.0 + residual) for residual, delta in rows)
        assert summary.residual == pytest.approx(rows[-1][0])

    def test_summary_recorded(self, gamma_dataset):
        config = DebevecCalibrationConfig(max_num_iterations=5)
        calibration = DebevecCalibration(config=config)
        calibration.calibrate(gamma_dataset)

        assert len(calibration.summaries) == 1
        summary = calibration.summaries[0]
        assert 1 <= summary.iterations <= 5
        assert summary.residual >= 0.0

    def test_progress_callback(self, gamma_dataset):
        calls = []
        config = DebevecCalibrationConfig(max_num_iterations=3,
                                          progress_cb=lambda **kw: calls.append(kw))
        DebevecCalibration(config=config).calibrate(gamma_dataset)

        assert len(calls) >= 1
        assert [c["current"] for c in calls] == list(range(1, len(calls) + 1))
        assert all(c["phase"] == "Gray" and c["total"] == 3 for c in calls)

    def test_visualization_callback(self, gamma_dataset):
        frames = []
        config = DebevecCalibrationConfig(max_num_iterations=2,
                                          visualize_progress=frames.append)
        DebevecCalibration(config=config).calibrate(gamma_dataset)

        assert len(frames) >= 1
        assert frames[0].dtype == np.uint8

    def test_no_valid_pixels(self):
        dataset = Dataset()
        dataset.insert(10, np.full((4, 4), 255, dtype=np.uint8))
        dataset.insert(5, np.full((4, 4), 255, dtype=np.uint8))

        with pytest.raises(CalibrationError, match="valid range"):
            DebevecCalibration().calibrate(dataset)
