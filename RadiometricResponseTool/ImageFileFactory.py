import numpy as np
import PIL.Image
from pathlib import Path
from typing import Union

from .Exceptions import SerializationError
from .MatIO import read_mat, write_mat

SUPPORTED_FORMATS = ("mat", "png")
# 8-bit gray, 8-bit color and palette PNGs; palettes are expanded to color
PNG_MODES = ("L", "RGB", "P")


class ImageFileFactory:
    """
    Factory for reading and writing dataset images regardless of format.

    Dispatches on the file extension: ``.mat`` files use the raw matrix
    format of ``MatIO``, ``.png`` files are decoded with Pillow.  Color PNG
    images are returned in BGR channel order so that both formats follow the
    same channel convention.

    Methods
    -------
    read_image(filename)
        Load an 8-bit image.
    write_image(filename, image)
        Store an 8-bit image, format chosen by the extension.
    is_valid_image_file(filename)
        Return ``True`` if *filename* has a supported extension.

    Examples
    --------
    >>> image = ImageFileFactory.read_image("/data/crf/000040_000.png")
    >>> image.dtype
    dtype('uint8')
    """

    @staticmethod
    def fileformat(filename: Union[str, Path]) -> str:
        return Path(filename).suffix.lower().lstrip(".")

    @staticmethod
    def is_valid_image_file(filename: Union[str, Path]) -> bool:
        """
        Check whether a filename has an extension this factory can read.

        Parameters
        ----------
        filename : str or Path
            Path or bare name of the file to check.

        Returns
        -------
        bool
            ``True`` for ``.mat`` and ``.png`` files, ``False`` otherwise.
        """
        return ImageFileFactory.fileformat(filename) in SUPPORTED_FORMATS

    @staticmethod
    def read_image(filename: Union[str, Path]) -> np.ndarray:
        """
        Load an image from disk.

        Returns
        -------
        np.ndarray
            ``uint8`` array of shape ``(rows, cols)`` or
            ``(rows, cols, 3)`` in BGR order.

        Raises
        ------
        SerializationError
            If the format is not supported, the file cannot be decoded, or
            the PNG is not 8-bit gray or color or palette.  Alpha and 16-bit
            PNGs are rejected instead of converted.
        """
        fileformat = ImageFileFactory.fileformat(filename)

        if fileformat == "mat":
            image = read_mat(filename)
        elif fileformat == "png":
            try:
                with PIL.Image.open(filename) as raw:
                    mode = raw.mode
                    if mode == "P":
                        raw = raw.convert("RGB")
                    if mode in PNG_MODES:
                        image = np.asarray(raw, dtype=np.uint8)
            except OSError as e:
                raise SerializationError(
                    f"Failed to decode image: {filename}") from e
            if mode not in PNG_MODES:
                raise SerializationError(
                    f"Unsupported PNG mode {mode}: {filename}")
            if image.ndim == 3:
                image = np.ascontiguousarray(image[:, :, ::-1])
        else:
            raise SerializationError(f"Unsupported file format: {fileformat}")

        if image.dtype != np.uint8:
            raise SerializationError(
                f"Expected an 8-bit image in {filename}, got {image.dtype}")
        return image

    @staticmethod
    def write_image(filename: Union[str, Path], image: np.ndarray) -> None:
        """
        Write an 8-bit single- or three-channel (BGR) image to disk.

        Raises
        ------
        SerializationError
            If the format is not supported or the file cannot be written.
        """
        fileformat = ImageFileFactory.fileformat(filename)

        if fileformat == "mat":
            write_mat(filename, image)
        elif fileformat == "png":
            if image.ndim == 3:
                image = np.ascontiguousarray(image[:, :, ::-1])
            try:
                PIL.Image.fromarray(np.asarray(image, dtype=np.uint8)).save(filename)
            except OSError as e:
                raise SerializationError(
                    f"Failed to write image: {filename}") from e
        else:
            raise SerializationError(f"Unsupported file format: {fileformat}")
