"""
Exceptions raised by the radiometric calibration package.

All errors derive from ``RadiometricCalibrationError`` and also from a
matching builtin exception.
"""


class RadiometricCalibrationError(Exception):
    """Base exception for all package-specific errors."""

    pass


class DatasetError(RadiometricCalibrationError, ValueError):
    """Raised when images inserted into a dataset are inconsistent."""

    pass


class EmptyDatasetError(DatasetError):
    """Raised when an operation needs samples but the dataset has none."""

    pass


class CalibrationError(RadiometricCalibrationError, RuntimeError):
    """Raised when a calibration cannot produce a usable response."""

    pass


class MethodUnavailableError(CalibrationError):
    """Raised when a calibration method is unknown or cannot run here."""

    pass


class SerializationError(RadiometricCalibrationError, IOError):
    """Raised when a matrix or dataset file cannot be read or written."""

    pass
