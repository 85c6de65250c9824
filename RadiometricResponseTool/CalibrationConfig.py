### CalibrationConfig Class ###
# File : CalibrationConfig.py

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, Callable, Tuple


class CalibrationConfig(BaseModel):
    """
    Settings shared by every radiometric calibration method.

    Subclasses add the method-specific knobs.  Pass an instance of a
    subclass to ``CalibrationFactory.create()`` to obtain the matching
    calibration object.

    Parameters
    ----------
    max_num_iterations : int, optional
        Iteration cap of the optimization.  Must be >= 1.  Default is ``30``.
    verbosity : int, optional
        ``0`` is silent, ``1`` logs a per-iteration progress table, ``2``
        additionally logs full solver diagnostics.  Default is ``0``.
    valid_pixel_range : tuple of int, optional
        Inclusive ``(min_valid, max_valid)`` 8-bit intensity band of the
        sensor.  Pixels outside of it are treated as under- or overexposed.
        Default is ``(1, 254)``.
    visualize_progress : callable or None, optional
        Called as ``visualize_progress(image)`` with an RGB ``uint8``
        preview of the current response after every iteration.  It may
        block (e.g. waiting for a key press).  Default is ``None``.
    progress_cb : callable or None, optional
        Callback for progress updates.  Called as
        ``progress_cb(phase, current, total)`` where *phase* is the channel
        name, *current* the iteration and *total* the iteration cap.
        Default is ``None``.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_num_iterations: int = Field(default=30, ge=1)
    verbosity: int = Field(default=0, ge=0, le=2)
    valid_pixel_range: Tuple[int, int] = (1, 254)

    visualize_progress: Optional[Callable] = None
    progress_cb: Optional[Callable] = None

    @field_validator("valid_pixel_range")
    @classmethod
    def validate_valid_pixel_range(cls, v):
        min_valid, max_valid = v
        if not 0 <= min_valid < max_valid <= 255:
            raise ValueError(
                "valid_pixel_range must satisfy 0 <= min < max <= 255, "
                f"got {v}")
        return v

    @property
    def min_valid(self) -> int:
        return self.valid_pixel_range[0]

    @property
    def max_valid(self) -> int:
        return self.valid_pixel_range[1]
