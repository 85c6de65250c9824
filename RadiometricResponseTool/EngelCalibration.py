### EngelCalibration Class ###
# File : EngelCalibration.py

from pydantic import Field
import numpy as np
from typing import ClassVar

from .Calibration import Calibration, ChannelSummary, NUM_LEVELS
from .Dataset import Dataset
from .EngelCalibrationConfig import EngelCalibrationConfig
from .Exceptions import CalibrationError
from .LoggingConfig import get_logger

logger = get_logger(__name__)

ANCHOR_LEVEL = 128


class EngelCalibration(Calibration):
    """
    Alternating calibration of Engel et al., "A Photometrically Calibrated
    Benchmark For Monocular Visual Odometry".

    The inverse response ``U`` and the irradiance map ``B`` are estimated by
    block coordinate descent on

        E(U, B) = sum over valid (pixel, t) of (U[I_t(pixel)] - t * B(pixel))^2

    Both half-steps have closed forms (Eqs. 7 and 8 of the paper).  After
    each iteration both unknowns are divided by ``U[128]`` to remove the
    scale ambiguity of the problem.

    Examples
    --------
    >>> calibration = EngelCalibration(config=EngelCalibrationConfig(verbosity=1))
    >>> response = calibration.calibrate(dataset)
    >>> response.shape
    (256, 3)
    """

    config: EngelCalibrationConfig = Field(default_factory=EngelCalibrationConfig)

    method_name: ClassVar[str] = "Engel"

    def calibrate_channel(self, dataset: Dataset) -> np.ndarray:
        """
        Run block coordinate descent on a single-channel dataset.

        Iterations are counted in half-steps: each irradiance and each
        response update advances the counter by one, and the loop stops
        once the counter reaches ``max_num_iterations`` or the energy
        decrease of a half-step falls below ``convergence_threshold``.

        Returns
        -------
        U : np.ndarray
            ``float32`` inverse response with 256 entries, scaled so that the
            anchor level equals 1.
        """
        threshold = self.config.convergence_threshold

        if self.config.initial_inverse_response is not None:
            U = np.array(self.config.initial_inverse_response, dtype=np.float64)
        else:
            U = np.arange(NUM_LEVELS, dtype=np.float64) / 255.0

        converged = False
        energy = 0.0
        delta = 0.0
        # Product of all rescalings, keeps energies comparable across iterations
        scale = 1.0

        self.print_header()

        iteration = 0
        while iteration < self.config.max_num_iterations:
            B = self.optimize_irradiance(dataset, U)
            e = self.compute_energy(dataset, U, B) / scale
            if iteration > 0:
                delta = energy - e
                if delta < threshold:
                    converged = True
            energy = e
            iteration += 1
            self.print_iteration(iteration, energy, delta, "B")

            U = self.optimize_inverse_response(dataset, B)
            e = self.compute_energy(dataset, U, B) / scale
            delta = energy - e
            if energy > 0 and delta < threshold:
                converged = True
            energy = e
            iteration += 1
            self.print_iteration(iteration, energy, delta, "U")

            factor = self.rescale_factor(U)
            U *= factor
            B *= factor
            scale *= factor

            self.visualize_progress(U)

            if converged:
                break

        self.print_footer()
        self.visualize_progress(U)

        if not converged:
            logger.debug("Channel %s stopped after %d iterations without converging",
                         self.channel_name, iteration)

        self.summaries.append(ChannelSummary(channel=self._channel,
                                             iterations=iteration,
                                             converged=converged,
                                             residual=energy))
        return U.astype(np.float32)

    def optimize_irradiance(self, dataset: Dataset, U: np.ndarray) -> np.ndarray:
        """
        Closed-form irradiance update (Eq. 8).

        ``B(x) = sum_t U[I_t(x)] * t / sum_t t^2`` over the samples where
        pixel ``x`` lies in the valid range.  Pixels that are never valid
        get an irradiance of 0.
        """
        numerator = np.zeros(self._image_shape(dataset), dtype=np.float64)
        denominator = np.zeros_like(numerator)

        for t in dataset.get_exposure_times():
            for image in dataset.get_images(t):
                valid = self.is_pixel_valid(image)
                numerator += np.where(valid, U[image] * t, 0.0)
                denominator += valid * float(t * t)

        return np.divide(numerator, denominator,
                         out=np.zeros_like(numerator),
                         where=denominator > 0)

    def optimize_inverse_response(self, dataset: Dataset, B: np.ndarray) -> np.ndarray:
        """
        Closed-form inverse response update (Eq. 7).

        For every level ``k`` in the valid range, ``U[k]`` is the mean of
        ``t * B(x)`` over all observations with ``I_t(x) == k``.  Levels of
        the valid range that were never observed are interpolated linearly
        from the observed ones, levels above the valid range are
        extrapolated from the last two valid entries and levels below it
        stay 0.

        Raises
        ------
        CalibrationError
            If no intensity of the valid range was observed.
        """
        min_valid = self.config.min_valid
        max_valid = self.config.max_valid

        sums = np.zeros(NUM_LEVELS, dtype=np.float64)
        counts = np.zeros(NUM_LEVELS, dtype=np.int64)

        for t in dataset.get_exposure_times():
            for image in dataset.get_images(t):
                flat = image.ravel()
                sums += np.bincount(flat, weights=(t * B).ravel(),
                                    minlength=NUM_LEVELS)
                counts += np.bincount(flat, minlength=NUM_LEVELS)

        levels = np.arange(min_valid, max_valid + 1)
        observed = levels[counts[levels] > 0]
        if observed.size == 0:
            raise CalibrationError(
                f"No intensity within the valid range was observed in channel "
                f"{self.channel_name}")

        U = np.zeros(NUM_LEVELS, dtype=np.float64)
        U[observed] = sums[observed] / counts[observed]
        U[levels] = np.interp(levels, observed, U[observed])

        U[max_valid + 1:] = 2 * U[max_valid] - U[max_valid - 1]
        return U

    def compute_energy(self, dataset: Dataset, U: np.ndarray, B: np.ndarray) -> float:
        """
        Root mean square residual ``U[I_t(x)] - t * B(x)`` over valid pixels.

        Raises
        ------
        CalibrationError
            If no pixel of the dataset lies in the valid range.
        """
        energy = 0.0
        num = 0
        for t in dataset.get_exposure_times():
            for image in dataset.get_images(t):
                valid = self.is_pixel_valid(image)
                r = U[image[valid]] - t * B[valid]
                energy += float(np.dot(r, r))
                num += r.size

        if num == 0:
            raise CalibrationError(
                f"No valid pixels in channel {self.channel_name}")
        return float(np.sqrt(energy / num))

    def rescale_factor(self, U: np.ndarray) -> float:
        """
        Factor that brings the anchor level ``U[128]`` to 1.

        Falls back to the maximum of ``U`` when the anchor is not positive,
        which happens if mid-gray lies outside the valid range.
        """
        anchor = U[ANCHOR_LEVEL]
        if not np.isfinite(anchor) or anchor <= 0:
            anchor = np.max(U)
        if not np.isfinite(anchor) or anchor <= 0:
            raise CalibrationError(
                f"Inverse response of channel {self.channel_name} vanished")
        return 1.0 / anchor

    @staticmethod
    def _image_shape(dataset: Dataset):
        width, height = dataset.get_image_size()
        return (height, width)
