
from typing import Union

from . import Capabilities
from .CalibrationConfig import CalibrationConfig
from .DebevecCalibrationConfig import DebevecCalibrationConfig
from .EngelCalibrationConfig import EngelCalibrationConfig
from .Exceptions import MethodUnavailableError

METHODS = ("engel", "debevec")


class CalibrationFactory(object):
    """
    Entry point from configs and method names to calibration objects.

    ``create`` picks the alternating (Engel) or robust (Debevec) calibration
    from the type of the config it is given.  ``config_for`` resolves a
    case-insensitive method name, as typed on the command line, to the
    matching config class, and ``available_methods`` lists the names that
    can run in the current environment.

    Methods
    -------
    create(config)
        Construct and return a ``Calibration`` subclass instance.
    config_for(method, **kwargs)
        Build the config object of a method given by name.
    available_methods()
        Names of the methods that can run in this environment.

    Examples
    --------
    >>> config = EngelCalibrationConfig(convergence_threshold=1e-6)
    >>> calibration = CalibrationFactory.create(config)
    >>> response = calibration.calibrate(dataset)
    """

    @staticmethod
    def create(config: Union[EngelCalibrationConfig, DebevecCalibrationConfig]):
        """
        Construct a ``Calibration`` object from a config.

        Parameters
        ----------
        config : EngelCalibrationConfig or DebevecCalibrationConfig
            A validated calibration configuration.

        Returns
        -------
        Calibration
            ``EngelCalibration`` or ``DebevecCalibration`` instance.

        Raises
        ------
        MethodUnavailableError
            If the method behind *config* cannot run here (the robust method
            without its solver), or *config* is not a recognised
            configuration type.
        """
        if isinstance(config, EngelCalibrationConfig):
            from .EngelCalibration import EngelCalibration
            return EngelCalibration(config=config)

        if isinstance(config, DebevecCalibrationConfig):
            if not Capabilities.solver_available():
                raise MethodUnavailableError(
                    "Debevec calibration is unavailable: the sparse "
                    "solver (scipy) cannot be imported")
            from .DebevecCalibration import DebevecCalibration
            return DebevecCalibration(config=config)

        raise MethodUnavailableError(
            f"Unsupported calibration config: {type(config)}")

    @staticmethod
    def config_for(method: str, **kwargs) -> CalibrationConfig:
        """
        Build the configuration of a method given by name.

        Parameters
        ----------
        method : {'engel', 'debevec'}
            Case-insensitive method name.
        **kwargs
            Fields of the configuration.  ``None`` values are dropped so the
            defaults apply.

        Raises
        ------
        MethodUnavailableError
            If *method* is not a known method name.
        """
        kwargs = {key: value for key, value in kwargs.items() if value is not None}
        method = method.lower()
        if method == "engel":
            return EngelCalibrationConfig(**kwargs)
        if method == "debevec":
            return DebevecCalibrationConfig(**kwargs)
        raise MethodUnavailableError(
            f"Unknown calibration method: {method}. "
            f"Please specify one of {', '.join(METHODS)}")

    @staticmethod
    def available_methods():
        if Capabilities.solver_available():
            return list(METHODS)
        return ["engel"]
