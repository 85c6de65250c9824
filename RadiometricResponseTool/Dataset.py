### Dataset Class ###
# File : Dataset.py

from pydantic import BaseModel, ConfigDict, Field
import numpy as np
from typing import Dict, List, Optional, Tuple

from .Exceptions import DatasetError, EmptyDatasetError
from .LoggingConfig import get_logger

logger = get_logger(__name__)


class Dataset(BaseModel):
    """
    Multi-exposure sample store used by radiometric calibration.

    Holds 8-bit images of a static scene, each tagged with the integer
    exposure time it was captured at.  Several images may share one exposure
    time.  All images in a dataset have the same spatial size and the same
    number of channels (1 or 3, BGR order).

    Attributes
    ----------
    data : dict
        Mapping ``exposure_time -> [image, ...]`` in insertion order.
    image_size : tuple of int or None
        ``(width, height)`` of the images, ``None`` while the dataset is
        empty.
    num_channels : int or None
        Number of channels per image, ``None`` while the dataset is empty.

    Examples
    --------
    >>> dataset = Dataset()
    >>> dataset.insert(40, np.zeros((480, 640), dtype=np.uint8))
    >>> dataset.insert(20, np.zeros((480, 640), dtype=np.uint8))
    >>> dataset.get_exposure_times()
    [40, 20]
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Dict[int, List[np.ndarray]] = Field(default_factory=dict)
    image_size: Optional[Tuple[int, int]] = None
    num_channels: Optional[int] = None

    def insert(self, exposure_time: int, image: np.ndarray) -> None:
        """
        Insert an image taken at a given exposure time.

        Parameters
        ----------
        exposure_time : int
            Exposure time the image was captured with.  Must be >= 1.
        image : np.ndarray
            ``uint8`` array of shape ``(rows, cols)`` or
            ``(rows, cols, channels)``.

        Raises
        ------
        DatasetError
            If the exposure time is not a positive integer, the image is not
            8-bit, or its size or channel count differs from the images
            already in the dataset.
        """
        if int(exposure_time) != exposure_time or exposure_time < 1:
            raise DatasetError(
                f"Exposure time must be a positive integer, got {exposure_time}")

        image = np.asarray(image)
        if image.dtype != np.uint8:
            raise DatasetError(
                f"Expected an 8-bit image, got dtype {image.dtype}")
        if image.ndim == 3 and image.shape[2] == 1:
            image = image[:, :, 0]
        if image.ndim not in (2, 3):
            raise DatasetError(
                f"Expected a 2-D image with optional channels, got shape {image.shape}")

        size = (image.shape[1], image.shape[0])
        channels = 1 if image.ndim == 2 else image.shape[2]

        if self.image_size is None:
            self.image_size = size
            self.num_channels = channels
        elif size != self.image_size or channels != self.num_channels:
            raise DatasetError(
                "Attempted to insert images of different size into same dataset: "
                f"expected {self.image_size} x {self.num_channels}, "
                f"got {size} x {channels}")

        self.data.setdefault(int(exposure_time), []).append(image)

    def get_image_size(self) -> Optional[Tuple[int, int]]:
        """Size of the images as ``(width, height)``."""
        return self.image_size

    def get_num_images(self, exposure_time: Optional[int] = None) -> int:
        """
        Number of images, in total or at a single exposure time.
        """
        if exposure_time is None:
            return sum(len(images) for images in self.data.values())
        return len(self.data.get(exposure_time, []))

    def get_images(self, exposure_time: int) -> List[np.ndarray]:
        """All images taken at *exposure_time* (empty list if none)."""
        return list(self.data.get(exposure_time, []))

    def get_exposure_times(self) -> List[int]:
        """
        Distinct exposure times present in the dataset, longest first.

        The descending order is relied upon by pixel sampling, which seeds
        its selection from the brightest exposure.
        """
        return sorted(self.data.keys(), reverse=True)

    def is_empty(self) -> bool:
        return not self.data

    def split_channels(self) -> List["Dataset"]:
        """
        Split a multi-channel dataset into single-channel datasets.

        Returns
        -------
        list of Dataset
            One dataset per channel, in channel index order.  A dataset that
            already has a single channel is returned as the only element.

        Raises
        ------
        EmptyDatasetError
            If the dataset holds no images.
        """
        if self.is_empty():
            raise EmptyDatasetError("Attempted to split empty dataset")

        if self.num_channels == 1:
            return [self]

        splitted = [Dataset() for _ in range(self.num_channels)]
        for exposure_time, images in self.data.items():
            for image in images:
                for c in range(self.num_channels):
                    splitted[c].insert(exposure_time,
                                       np.ascontiguousarray(image[:, :, c]))

        logger.debug("Split dataset of %d images into %d channels",
                     self.get_num_images(), self.num_channels)
        return splitted

    def as_image_and_exposure_time_lists(self) -> Tuple[List[np.ndarray], List[int]]:
        """
        Flatten the dataset into paired lists of images and exposure times.
        """
        images = []
        exposure_times = []
        for exposure_time, samples in self.data.items():
            for image in samples:
                images.append(image)
                exposure_times.append(exposure_time)
        return images, exposure_times
