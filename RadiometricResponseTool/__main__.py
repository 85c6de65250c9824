"""
Calibrate the radiometric response of a camera from a stored dataset.

Two algorithms are available:
 * Engel et al. (A Photometrically Calibrated Benchmark For Monocular Visual Odometry)
 * Debevec and Malik (Recovering High Dynamic Range Radiance Maps from Photographs)

The working range of the sensor can be specified with --valid-min/--valid-max.
Pixels with intensity values outside this range do not contribute to the
energy and irradiance computation, however the radiometric response is
estimated for them as well.

RUN
---
  python -m RadiometricResponseTool /data/crf_run -o camera.crf
  radiometric-calibrate /data/crf_run -o camera.crf -m debevec --verbosity 1
"""

import argparse
import logging
import sys

from pydantic import ValidationError

from .CalibrationFactory import CalibrationFactory, METHODS
from .DatasetIO import load_dataset
from .Exceptions import RadiometricCalibrationError
from .LoggingConfig import get_logger, setup_logging
from .PlotResponse import plot_radiometric_response
from .RadiometricResponse import RadiometricResponse

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radiometric-calibrate",
        description="Calibrate radiometric response of a camera from a "
                    "multi-exposure dataset.")
    parser.add_argument("data_source",
                        help="Path to a dataset directory (NNNNNN_III.mat/.png files)")
    parser.add_argument("-o", "--output", required=True,
                        help="Output filename of the calibrated response")
    parser.add_argument("-m", "--method", default="engel", choices=METHODS,
                        help="Calibration method to use (default: engel)")
    parser.add_argument("-t", "--threshold", type=float, default=None,
                        help="Energy update below which convergence is declared "
                             "(engel only, default: 1e-5)")
    parser.add_argument("--valid-min", type=int, default=1,
                        help="Minimum valid intensity value of the sensor (default: 1)")
    parser.add_argument("--valid-max", type=int, default=254,
                        help="Maximum valid intensity value of the sensor (default: 254)")
    parser.add_argument("--max-iterations", type=int, default=None,
                        help="Maximum number of iterations (default: 30)")
    parser.add_argument("--verbosity", type=int, default=1, choices=(0, 1, 2),
                        help="0 silent, 1 progress table, 2 solver diagnostics")
    parser.add_argument("--min-samples", type=int, default=None,
                        help="Minimum samples per intensity level (debevec only)")
    parser.add_argument("--smoothing-lambda", type=float, default=None,
                        help="Smoothness weight (debevec only, default: 50)")
    parser.add_argument("--visualize", action="store_true",
                        help="Visualize the calibration process and results")
    return parser


def make_imshow():
    import matplotlib.pyplot as plt

    def imshow(image, pause=0.001):
        plt.figure("Calibration")
        plt.clf()
        plt.imshow(image)
        plt.axis("off")
        plt.pause(pause)

    return imshow


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.INFO if args.verbosity else logging.WARNING)

    imshow = make_imshow() if args.visualize else None

    try:
        dataset = load_dataset(args.data_source)
        config = CalibrationFactory.config_for(
            args.method,
            max_num_iterations=args.max_iterations,
            verbosity=args.verbosity,
            valid_pixel_range=(args.valid_min, args.valid_max),
            visualize_progress=imshow,
            convergence_threshold=args.threshold,
            min_samples_per_level=args.min_samples,
            smoothing_lambda=args.smoothing_lambda)
        calibration = CalibrationFactory.create(config)
        response = RadiometricResponse(response=calibration.calibrate(dataset))
        logger.info("Done, writing response to: %s", args.output)
        response.save(args.output)
    except ValidationError as e:
        logger.error("Invalid calibration settings: %s", e)
        return 1
    except RadiometricCalibrationError as e:
        logger.error("%s", e)
        return 1

    if imshow is not None:
        import matplotlib.pyplot as plt
        imshow(plot_radiometric_response(response.response))
        plt.show()

    return 0


if __name__ == "__main__":
    sys.exit(main())
