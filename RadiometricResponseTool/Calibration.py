### Calibration Class ###
# File : Calibration.py

from abc import abstractmethod
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
import numpy as np
from typing import ClassVar, List, Optional

from .CalibrationConfig import CalibrationConfig
from .Channels import channel_name
from .Dataset import Dataset
from .Exceptions import CalibrationError, EmptyDatasetError
from .LoggingConfig import get_logger
from .PlotResponse import plot_radiometric_response

logger = get_logger(__name__)

NUM_LEVELS = 256


class ChannelSummary(BaseModel):
    """Outcome of calibrating a single channel."""

    channel: int
    iterations: int = 0
    converged: bool = False
    residual: Optional[float] = None


class Calibration(BaseModel):
    """
    Base class of the joint response / irradiance calibration methods.

    ``calibrate()`` splits a dataset into its color channels, hands each
    single-channel dataset to ``calibrate_channel()`` (implemented by the
    subclasses) and post-processes the resulting curves into an invertible
    inverse response.

    Attributes
    ----------
    config : CalibrationConfig
        Settings of the run.  Subclasses narrow the type.
    response : np.ndarray or None
        ``float32`` array of shape ``(256, channels)`` holding the last
        calibrated inverse response.  ``None`` until ``calibrate()`` ran.
    summaries : list of ChannelSummary
        Iteration count, convergence flag and final residual per channel of
        the last run.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: CalibrationConfig = Field(default_factory=CalibrationConfig)
    response: Optional[np.ndarray] = None
    summaries: List[ChannelSummary] = Field(default_factory=list)

    _channel: int = PrivateAttr(default=0)
    _num_channels: int = PrivateAttr(default=1)

    method_name: ClassVar[str] = "Calibration"

    def calibrate(self, dataset: Dataset) -> np.ndarray:
        """
        Calibrate the inverse response of the camera that took *dataset*.

        The per-channel curves are post-processed so that they can be used
        as lookup tables:

        * rescaled so that the maximum value is 1,
        * intensities below ``min_valid`` mapped to 0,
        * intensities above ``max_valid`` mapped to 1,
        * sorted to ensure invertibility.

        Parameters
        ----------
        dataset : Dataset
            Multi-exposure dataset with 1 or 3 channels.

        Returns
        -------
        response : np.ndarray
            ``float32`` array of shape ``(256, channels)``.

        Raises
        ------
        EmptyDatasetError
            If *dataset* holds no images.
        CalibrationError
            If a channel could not be calibrated.
        """
        if dataset.is_empty():
            raise EmptyDatasetError("Cannot calibrate an empty dataset")

        if self.config.verbosity:
            logger.info("Starting %s calibration procedure", self.method_name)

        datasets = dataset.split_channels()
        self._num_channels = len(datasets)
        self.summaries = []

        response_channels = []
        for channel, channel_dataset in enumerate(datasets):
            self._channel = channel
            curve = self.calibrate_channel(channel_dataset)
            response_channels.append(
                self.postprocess(np.asarray(curve, dtype=np.float64).ravel()))

        self.response = np.stack(response_channels, axis=1).astype(np.float32)
        return self.response

    @abstractmethod
    def calibrate_channel(self, dataset: Dataset) -> np.ndarray:
        """
        Calibrate a single color channel.

        The dataset is guaranteed to have a single channel.  Implementations
        return the 256-entry inverse response before post-processing.
        """

    def postprocess(self, curve: np.ndarray) -> np.ndarray:
        """
        Normalize, clamp and sort one 256-entry curve.

        Raises
        ------
        CalibrationError
            If the curve has no finite positive maximum.
        """
        if curve.size != NUM_LEVELS:
            raise CalibrationError(
                f"Expected a curve with {NUM_LEVELS} entries, got {curve.size}")

        curve_max = np.max(curve)
        if not np.isfinite(curve_max) or curve_max <= 0:
            raise CalibrationError(
                f"Response of channel {self.channel_name} has no positive "
                f"finite maximum ({curve_max})")

        curve = curve / curve_max
        curve[:self.config.min_valid] = 0.0
        curve[self.config.max_valid + 1:] = 1.0
        return np.sort(curve, kind="stable")

    @property
    def channel_name(self) -> str:
        return channel_name(self._channel, self._num_channels)

    def is_pixel_valid(self, pixels):
        """Element-wise test for intensities within the valid range."""
        return (pixels >= self.config.min_valid) & (pixels <= self.config.max_valid)

    ### PROGRESS REPORTING ###
    def print_header(self) -> None:
        if self.config.verbosity:
            logger.info("| %-7s | %-5s | %14s | %14s |",
                        "Channel", "Iter", "Residual", "Delta")

    def print_footer(self) -> None:
        if self.config.verbosity:
            logger.info("-" * 53)

    def print_iteration(self,
                        iteration: int,
                        residual: float,
                        delta: float,
                        extra: str = " ") -> None:
        """
        Log one row of the progress table and notify ``progress_cb``.
        """
        if self.config.verbosity:
            if iteration == 1:
                logger.info("| %-7s | %4d%s | %14.6f | %14s |",
                            self.channel_name, iteration, extra, residual, "")
            else:
                logger.info("| %-7s | %4d%s | %14.6f | %14.6f |",
                            "", iteration, extra, residual, delta)

        if self.config.progress_cb:
            self.config.progress_cb(phase=self.channel_name,
                                    current=iteration,
                                    total=self.config.max_num_iterations)

    def visualize_progress(self, curve: np.ndarray, samples=None) -> None:
        """
        Hand a rendering of *curve* to the visualization callback, if any.
        """
        if self.config.visualize_progress is None:
            return
        image = plot_radiometric_response(curve,
                                          samples=samples,
                                          channel=self._channel,
                                          num_channels=self._num_channels)
        self.config.visualize_progress(image)
