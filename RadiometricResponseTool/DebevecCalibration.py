### DebevecCalibration Class ###
# File : DebevecCalibration.py

from pydantic import Field, PrivateAttr
import numpy as np
from typing import ClassVar, List, Optional, Tuple

from . import Capabilities
from .Calibration import Calibration, ChannelSummary, NUM_LEVELS
from .Dataset import Dataset
from .DebevecCalibrationConfig import DebevecCalibrationConfig
from .Exceptions import CalibrationError, MethodUnavailableError
from .LoggingConfig import get_logger

logger = get_logger(__name__)

FIXED_LEVEL = 128

# Stopping rules of the solver
FUNCTION_TOLERANCE = 1e-6
PARAMETER_TOLERANCE = 1e-8
# Relative diagonal damping, keeps the normal equations solvable when a
# direction is not constrained by the data
DAMPING = 1e-10


class DebevecCalibration(Calibration):
    """
    Robust calibration after Debevec and Malik, "Recovering High Dynamic
    Range Radiance Maps from Photographs".

    A fixed, intensity-stratified sample of pixel locations is chosen from
    the dataset.  For every sampled location ``i``, exposure ``t`` and valid
    observation ``z`` one residual

        r = logU[z] - (log(t) + logX[i])

    wrapped in a Huber loss is added, together with a second-difference
    smoothness term on ``logU`` weighted by ``smoothing_lambda ** 2``.
    ``logU[128]`` is held constant to fix the scale.

    The residuals are linear in the parameters, so every solver iteration is
    a Gauss-Newton step on the Huber-reweighted normal equations, solved
    exactly with a sparse direct factorization.  The cost never increases
    between iterations.

    Raises
    ------
    MethodUnavailableError
        On construction, if the sparse solver cannot be imported.
    """

    config: DebevecCalibrationConfig = Field(default_factory=DebevecCalibrationConfig)

    method_name: ClassVar[str] = "Debevec"

    _locations: Optional[np.ndarray] = PrivateAttr(default=None)
    _observations: Optional[tuple] = PrivateAttr(default=None)
    _free_levels: Optional[np.ndarray] = PrivateAttr(default=None)
    _fixed_value: float = PrivateAttr(default=0.0)
    _x: Optional[np.ndarray] = PrivateAttr(default=None)

    def model_post_init(self, __context) -> None:
        if not Capabilities.solver_available():
            raise MethodUnavailableError(
                "Debevec calibration requires scipy, which is not installed")

    def calibrate_channel(self, dataset: Dataset) -> np.ndarray:
        """
        Jointly estimate ``logU`` and the sampled log-irradiances.

        Iterates until the relative cost decrease drops below
        ``FUNCTION_TOLERANCE``, the step becomes negligible, or
        ``max_num_iterations`` steps were taken.

        Returns
        -------
        U : np.ndarray
            ``float32`` inverse response ``exp(logU)`` with 256 entries.

        Raises
        ------
        CalibrationError
            If pixel sampling selects no location, or the normal equations
            cannot be solved.
        """
        self._locations, _ = self.select_pixels(dataset)
        if self._locations.size == 0:
            raise CalibrationError(
                f"No pixel of channel {self.channel_name} lies in the valid range")

        self._observations = self.collect_observations(dataset, self._locations)
        loc_idx, brightness, log_t = self._observations
        num_locations = self._locations.size

        logU = np.log(0.5 + np.arange(NUM_LEVELS) / 256.0)

        # Initial irradiances from the closed form under the starting logU
        sums = np.bincount(loc_idx, weights=logU[brightness] - log_t,
                           minlength=num_locations)
        counts = np.bincount(loc_idx, minlength=num_locations)
        logX = sums / counts

        self._free_levels = np.delete(np.arange(NUM_LEVELS), FIXED_LEVEL)
        self._fixed_value = logU[FIXED_LEVEL]
        self._x = np.concatenate([logU[self._free_levels], logX])

        jacobian = self._build_jacobian(loc_idx, brightness, num_locations)
        loss = self._make_loss(loc_idx.size)

        residuals = self._residuals(self._x)
        rho = loss(residuals * residuals)
        cost = 0.5 * float(np.sum(rho[0]))

        converged = False
        iteration = 0

        self.print_header()

        while iteration < self.config.max_num_iterations:
            step = self.solve_step(jacobian, residuals, rho[1])

            self._x = self._x + step
            residuals = self._residuals(self._x)
            rho = loss(residuals * residuals)
            new_cost = 0.5 * float(np.sum(rho[0]))
            delta = cost - new_cost
            iteration += 1

            step_norm = float(np.linalg.norm(step))
            if self.config.verbosity > 1:
                logger.info("step norm %.3e, inlier ratio %.3f",
                            step_norm, float(np.mean(rho[1][:loc_idx.size] >= 1.0)))

            self.print_iteration(iteration, new_cost, delta)
            if self.config.visualize_progress is not None:
                self._visualize_current()

            x_norm = float(np.linalg.norm(self._x))
            if (abs(delta) <= FUNCTION_TOLERANCE * cost
                    or step_norm <= PARAMETER_TOLERANCE * (x_norm + PARAMETER_TOLERANCE)):
                converged = True
            cost = new_cost
            if converged:
                break

        self.print_footer()

        if self.config.verbosity > 1:
            logger.info("Solver %s after %d iterations, cost %.6e",
                        "converged" if converged else "stopped", iteration, cost)

        self.summaries.append(ChannelSummary(channel=self._channel,
                                             iterations=iteration,
                                             converged=converged,
                                             residual=cost))

        logU, _ = self._unpack(self._x)
        return np.exp(logU).astype(np.float32)

    def solve_step(self, jacobian, residuals: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """
        Gauss-Newton step of the reweighted problem.

        Solves ``(J^T W J) step = -J^T W r`` where ``W`` holds the loss
        derivative of each residual.
        """
        from scipy.sparse import diags, identity
        from scipy.sparse.linalg import spsolve

        weighted = jacobian.T @ diags(weights)
        normal = (weighted @ jacobian).tocsc()
        damping = DAMPING * max(float(normal.diagonal().max()), 1.0)
        normal = normal + damping * identity(normal.shape[0], format="csc")

        step = spsolve(normal, -(weighted @ residuals))
        if not np.all(np.isfinite(step)):
            raise CalibrationError(
                f"Normal equations of channel {self.channel_name} are singular")
        return step

    def select_pixels(self, dataset: Dataset) -> Tuple[np.ndarray, np.ndarray]:
        """
        Choose pixel locations so that every valid intensity is well observed.

        Pixels of the first image of the longest exposure are walked in
        order of decreasing intensity.  For each level from ``max_valid``
        down to ``min_valid``, locations with that intensity are selected
        until the level's histogram holds ``min_samples_per_level``
        observations.  Every selected location is probed in the first image
        of each exposure and all valid intensities found there are counted.

        Returns
        -------
        locations : np.ndarray
            Flat indices of the selected pixels, in selection order.
        histogram : np.ndarray
            Number of valid observations per intensity level (256 entries)
            contributed by the selected locations.
        """
        times = dataset.get_exposure_times()
        probes = np.stack([dataset.get_images(t)[0].ravel() for t in times])
        valid_probes = self.is_pixel_valid(probes)

        flat = probes[0]
        indices = np.argsort(-flat.astype(np.int16), kind="stable")

        min_samples = self.config.min_samples_per_level
        hist = np.zeros(NUM_LEVELS, dtype=np.int64)
        locations: List[int] = []

        x = 0
        for intensity in range(self.config.max_valid, self.config.min_valid - 1, -1):
            while hist[intensity] < min_samples and x < flat.size:
                index = indices[x]
                x += 1
                p = flat[index]
                if p > intensity:
                    continue
                if p < intensity:
                    # Revisit this pixel for the next level
                    x -= 1
                    break
                locations.append(int(index))
                observed = probes[:, index][valid_probes[:, index]]
                np.add.at(hist, observed, 1)

        logger.debug("Selected %d locations in channel %s",
                     len(locations), self.channel_name)
        return np.asarray(locations, dtype=np.int64), hist

    def collect_observations(self, dataset: Dataset, locations: np.ndarray):
        """
        Gather the valid observations of the sampled locations.

        Returns
        -------
        loc_idx : np.ndarray
            Index into *locations* of each observation.
        brightness : np.ndarray
            Observed intensity.
        log_t : np.ndarray
            Logarithm of the exposure time of the observation.
        """
        loc_idx, brightness, log_t = [], [], []
        positions = np.arange(locations.size)
        for t in dataset.get_exposure_times():
            for image in dataset.get_images(t):
                p = image.ravel()[locations]
                valid = self.is_pixel_valid(p)
                loc_idx.append(positions[valid])
                brightness.append(p[valid].astype(np.int64))
                log_t.append(np.full(int(valid.sum()), np.log(t)))
        return (np.concatenate(loc_idx), np.concatenate(brightness),
                np.concatenate(log_t))

    ### PROBLEM DEFINITION ###
    def _unpack(self, x: np.ndarray):
        logU = np.empty(NUM_LEVELS, dtype=np.float64)
        logU[self._free_levels] = x[:NUM_LEVELS - 1]
        logU[FIXED_LEVEL] = self._fixed_value
        return logU, x[NUM_LEVELS - 1:]

    def _residuals(self, x: np.ndarray) -> np.ndarray:
        loc_idx, brightness, log_t = self._observations
        logU, logX = self._unpack(x)
        data = logU[brightness] - (log_t + logX[loc_idx])
        smoothness = logU[:-2] - 2 * logU[1:-1] + logU[2:]
        return np.concatenate([data, smoothness])

    def _build_jacobian(self, loc_idx, brightness, num_locations):
        """
        Sparse Jacobian of ``_residuals``; constant since residuals are linear.
        """
        from scipy.sparse import coo_matrix

        column = np.full(NUM_LEVELS, -1, dtype=np.int64)
        column[self._free_levels] = np.arange(NUM_LEVELS - 1)

        num_data = loc_idx.size
        rows, cols, values = [], [], []

        data_rows = np.arange(num_data)
        free = column[brightness] >= 0
        rows += [data_rows[free], data_rows]
        cols += [column[brightness[free]], NUM_LEVELS - 1 + loc_idx]
        values += [np.ones(int(free.sum())), -np.ones(num_data)]

        centers = np.arange(1, NUM_LEVELS - 1)
        for offset, weight in ((-1, 1.0), (0, -2.0), (1, 1.0)):
            target = column[centers + offset]
            free = target >= 0
            rows.append(num_data + centers[free] - 1)
            cols.append(target[free])
            values.append(np.full(int(free.sum()), weight))

        shape = (num_data + NUM_LEVELS - 2, NUM_LEVELS - 1 + num_locations)
        return coo_matrix((np.concatenate(values),
                           (np.concatenate(rows), np.concatenate(cols))),
                          shape=shape).tocsr()

    def _make_loss(self, num_data: int):
        """
        Loss applying Huber to data residuals and a plain scaling of
        ``smoothing_lambda ** 2`` to the smoothness residuals.

        Called with squared residuals, returns the loss value and its
        derivative.  The derivative doubles as the weight of each residual
        in the reweighted normal equations.
        """
        delta = self.config.huber_scale
        delta2 = delta * delta
        weight = self.config.smoothing_lambda ** 2

        def loss(z):
            rho = np.empty((2, z.size))
            s = z[:num_data]
            inlier = s <= delta2
            root = np.sqrt(np.maximum(s, delta2))
            rho[0, :num_data] = np.where(inlier, s, 2 * delta * root - delta2)
            rho[1, :num_data] = np.where(inlier, 1.0, delta / root)
            rho[0, num_data:] = weight * z[num_data:]
            rho[1, num_data:] = weight
            return rho

        return loss

    def _visualize_current(self) -> None:
        loc_idx, brightness, log_t = self._observations
        logU, logX = self._unpack(self._x)
        samples = [(brightness, np.exp(logX[loc_idx] + log_t))]
        self.visualize_progress(np.exp(logU), samples=samples)
