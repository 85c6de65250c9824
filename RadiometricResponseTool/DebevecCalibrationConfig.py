### DebevecCalibrationConfig Class ###
# File : DebevecCalibrationConfig.py

from pydantic import Field

from .CalibrationConfig import CalibrationConfig


class DebevecCalibrationConfig(CalibrationConfig):
    """
    Configuration for the robust (Debevec and Malik) calibration.

    Parameters
    ----------
    min_samples_per_level : int, optional
        Pixel sampling keeps selecting locations until every intensity level
        in the valid range has at least this many observations (or the
        image runs out of pixels).  Must be >= 1.  Default is ``5``.
    smoothing_lambda : float, optional
        Weight of the second-difference smoothness term; the term is scaled
        by ``smoothing_lambda ** 2``.  Must be > 0.  Default is ``50``.
    huber_scale : float, optional
        Scale of the Huber loss wrapped around the data residuals.
        Must be > 0.  Default is ``0.05``.
    """

    min_samples_per_level: int = Field(default=5, ge=1)
    smoothing_lambda: float = Field(default=50.0, gt=0)
    huber_scale: float = Field(default=0.05, gt=0)
