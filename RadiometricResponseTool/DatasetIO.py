import os
from pathlib import Path
from typing import Union

from .Dataset import Dataset
from .Exceptions import DatasetError, SerializationError
from .ImageFileFactory import ImageFileFactory
from .LoggingConfig import get_logger

logger = get_logger(__name__)

EXPOSURE_DIGITS = 6


def load_dataset(directory: Union[str, Path], progress_cb=None) -> Dataset:
    """
    Load a multi-exposure dataset from a directory of image files.

    Every file whose name starts with a zero-padded 6-digit exposure time
    (``NNNNNN_III.mat`` or ``NNNNNN_III.png``) is inserted into the dataset
    at that exposure time.  Files with other names or unreadable contents
    are skipped.  Files are visited in sorted order.

    Parameters
    ----------
    directory : str or Path
        Directory containing the dataset.
    progress_cb : callable or None, optional
        Progress callback invoked as
        ``progress_cb(phase='loading', current=int, total=int)`` after each
        candidate file.  ``None`` disables callbacks.

    Returns
    -------
    dataset : Dataset
        The populated dataset (possibly empty).

    Raises
    ------
    DatasetError
        If *directory* does not exist or is not a directory, or the images
        in it do not share one size.

    Examples
    --------
    >>> dataset = load_dataset("/data/crf_run")
    >>> dataset.get_exposure_times()[:3]
    [3200, 1600, 800]
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DatasetError(f"Dataset directory does not exist: {directory}")

    factory = ImageFileFactory()
    file_list = [f for f in sorted(os.listdir(directory))
                 if factory.is_valid_image_file(f)]

    dataset = Dataset()
    for idx, name in enumerate(file_list):
        stem = Path(name).stem
        exposure = stem[:EXPOSURE_DIGITS]
        if len(exposure) == EXPOSURE_DIGITS and exposure.isdigit():
            try:
                image = factory.read_image(directory / name)
            except SerializationError as e:
                logger.debug("Skipping unreadable file %s: %s", name, e)
            else:
                dataset.insert(int(exposure), image)
        else:
            logger.debug("Skipping file without exposure prefix: %s", name)

        if progress_cb:
            progress_cb(phase="loading", current=idx + 1, total=len(file_list))

    logger.info("Loaded %d images at %d exposure times from %s",
                dataset.get_num_images(), len(dataset.get_exposure_times()),
                directory)
    return dataset


def save_dataset(dataset: Dataset,
                 directory: Union[str, Path],
                 fileformat: str = "mat") -> None:
    """
    Save a dataset as one file per image named ``%06d_%03d.<fileformat>``.

    Parameters
    ----------
    dataset : Dataset
        Dataset to store.
    directory : str or Path
        Target directory; created if missing.
    fileformat : {'mat', 'png'}, optional
        File format of the images.  Default is ``'mat'``.

    Raises
    ------
    SerializationError
        If the format is not supported or a file cannot be written.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    factory = ImageFileFactory()
    for exposure_time in dataset.get_exposure_times():
        for i, image in enumerate(dataset.get_images(exposure_time)):
            filename = directory / f"{exposure_time:06d}_{i:03d}.{fileformat}"
            factory.write_image(filename, image)

    logger.info("Saved %d images to %s", dataset.get_num_images(), directory)
