# RadiometricResponseTool/__init__.py

from .Dataset import Dataset
from .DatasetIO import load_dataset, save_dataset
from .ImageFileFactory import ImageFileFactory
from .MatIO import read_mat, write_mat

from .CalibrationFactory import CalibrationFactory
from .Calibration import Calibration, ChannelSummary
from .EngelCalibration import EngelCalibration
from .DebevecCalibration import DebevecCalibration
from .CalibrationConfig import CalibrationConfig
from .EngelCalibrationConfig import EngelCalibrationConfig
from .DebevecCalibrationConfig import DebevecCalibrationConfig
from .RadiometricResponse import RadiometricResponse
from .PlotResponse import plot_radiometric_response

from .Exceptions import (RadiometricCalibrationError, DatasetError,
                         EmptyDatasetError, CalibrationError,
                         MethodUnavailableError, SerializationError)
from .LoggingConfig import get_logger, setup_logging

__all__ = [
    "Dataset", "load_dataset", "save_dataset", "ImageFileFactory", "read_mat",
    "write_mat", "CalibrationFactory", "Calibration", "ChannelSummary",
    "EngelCalibration", "DebevecCalibration", "CalibrationConfig",
    "EngelCalibrationConfig", "DebevecCalibrationConfig",
    "RadiometricResponse", "plot_radiometric_response",
    "RadiometricCalibrationError", "DatasetError", "EmptyDatasetError",
    "CalibrationError", "MethodUnavailableError", "SerializationError",
    "get_logger", "setup_logging"
]
