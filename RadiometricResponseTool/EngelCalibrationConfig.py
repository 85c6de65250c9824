### EngelCalibrationConfig Class ###
# File : EngelCalibrationConfig.py

from pydantic import field_validator
from typing import Optional
import numpy as np

from .CalibrationConfig import CalibrationConfig


class EngelCalibrationConfig(CalibrationConfig):
    """
    Configuration for the alternating (Engel et al.) calibration.

    Parameters
    ----------
    convergence_threshold : float, optional
        A channel is declared converged once the energy decrease between two
        half-steps drops below this value.  Default is ``1e-5``.
    initial_inverse_response : np.ndarray or None, optional
        256-entry starting guess of the inverse response.  ``None`` starts
        from the identity ``U[k] = k / 255``.
    """

    convergence_threshold: float = 1e-5
    initial_inverse_response: Optional[np.ndarray] = None

    @field_validator("initial_inverse_response", mode="before")
    @classmethod
    def validate_initial_inverse_response(cls, v):
        if v is None:
            return v
        v = np.asarray(v, dtype=np.float64).ravel()
        if v.size != 256:
            raise ValueError(
                f"initial_inverse_response must have 256 entries, got {v.size}")
        if not np.all(np.isfinite(v)):
            raise ValueError("initial_inverse_response must be finite")
        return v
