### RadiometricResponse Class ###
# File : RadiometricResponse.py

from pydantic import BaseModel, ConfigDict, field_validator
import numpy as np
from pathlib import Path
from typing import Union

from .Exceptions import CalibrationError
from .MatIO import read_mat, write_mat

NUM_LEVELS = 256


class RadiometricResponse(BaseModel):
    """
    Calibrated inverse response of a camera, usable as a lookup table.

    Maps 8-bit brightness to relative irradiance (inverse map) and back
    (direct map).  The curve must be non-decreasing per channel, which
    ``Calibration.calibrate()`` guarantees.

    Parameters
    ----------
    response : np.ndarray
        ``float32`` array of shape ``(256, channels)`` (a ``(256,)`` curve is
        treated as single channel).

    Raises
    ------
    CalibrationError
        If *response* does not have 256 entries per channel.

    Examples
    --------
    >>> rr = RadiometricResponse(response=calibration.calibrate(dataset))
    >>> E = rr.inverse_map(image)
    >>> np.array_equal(rr.direct_map(E), image)
    True
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: np.ndarray

    @field_validator("response", mode="before")
    @classmethod
    def validate_response(cls, v):
        v = np.asarray(v, dtype=np.float32)
        if v.ndim == 3 and v.shape[1] == 1:
            v = v[:, 0, :]
        if v.ndim == 1:
            v = v.reshape(-1, 1)
        if v.ndim != 2 or v.shape[0] != NUM_LEVELS:
            raise CalibrationError(
                f"Radiometric response must have {NUM_LEVELS} rows, got shape {v.shape}")
        return v

    @property
    def num_channels(self) -> int:
        return self.response.shape[1]

    def _check_channels(self, array: np.ndarray, name: str) -> None:
        channels = 1 if array.ndim == 2 else array.shape[-1]
        if array.ndim not in (2, 3) or channels != self.num_channels:
            raise CalibrationError(
                f"{name} of shape {array.shape} does not match a response with "
                f"{self.num_channels} channel(s)")

    def inverse_map(self, image: np.ndarray) -> np.ndarray:
        """
        Brightness image (``uint8``) to irradiance image (``float32``).
        """
        image = np.asarray(image)
        if image.dtype != np.uint8:
            raise CalibrationError(f"Brightness image must be uint8, got {image.dtype}")
        self._check_channels(image, "Brightness image")
        if image.ndim == 2:
            return self.response[image, 0]
        return self._lookup(self.response, image)

    def inverse_log_map(self, image: np.ndarray) -> np.ndarray:
        """Brightness image to log-irradiance image."""
        with np.errstate(divide="ignore"):
            return np.log(self.inverse_map(image))

    def direct_map(self, irradiance: np.ndarray) -> np.ndarray:
        """
        Irradiance image to brightness image.

        Each value maps to the first brightness whose response is not below
        it; values beyond the top of the curve saturate at 255.
        """
        irradiance = np.asarray(irradiance, dtype=np.float32)
        self._check_channels(irradiance, "Irradiance image")
        if irradiance.ndim == 2:
            irradiance = irradiance[:, :, np.newaxis]

        out = np.empty(irradiance.shape, dtype=np.uint8)
        for c in range(self.num_channels):
            levels = np.searchsorted(self.response[:, c], irradiance[:, :, c],
                                     side="left")
            out[:, :, c] = np.minimum(levels, NUM_LEVELS - 1)

        if self.num_channels == 1:
            return out[:, :, 0]
        return out

    @staticmethod
    def _lookup(table: np.ndarray, image: np.ndarray) -> np.ndarray:
        channels = np.arange(table.shape[1])
        return table[image, channels]

    def save(self, filename: Union[str, Path]) -> None:
        """Write the response in raw matrix format (256 rows, 1 column)."""
        write_mat(filename, self.response.reshape(NUM_LEVELS, 1, self.num_channels))

    @classmethod
    def load(cls, filename: Union[str, Path]) -> "RadiometricResponse":
        """Read a response written by ``save``."""
        return cls(response=read_mat(filename))
