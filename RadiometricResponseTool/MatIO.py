import numpy as np
from pathlib import Path
from typing import Union

from .Exceptions import SerializationError

MAGIC = 0xC4A1FDD9
HEADER = np.dtype("<u4")

# Element depth codes of the OpenCV type encoding
_DEPTH_TO_DTYPE = {
    0: np.dtype(np.uint8),
    1: np.dtype(np.int8),
    2: np.dtype("<u2"),
    3: np.dtype("<i2"),
    4: np.dtype("<i4"),
    5: np.dtype("<f4"),
    6: np.dtype("<f8"),
}
_DTYPE_TO_DEPTH = {dtype.newbyteorder("="): depth
                   for depth, dtype in _DEPTH_TO_DTYPE.items()}

MAX_CHANNELS = 512


def encode_type(dtype, channels: int) -> int:
    """
    Encode a numpy dtype and channel count as an OpenCV matrix type.

    Raises
    ------
    SerializationError
        If the dtype has no OpenCV equivalent.
    """
    depth = _DTYPE_TO_DEPTH.get(np.dtype(dtype).newbyteorder("="))
    if depth is None:
        raise SerializationError(f"Unsupported element type: {np.dtype(dtype)}")
    return depth | ((channels - 1) << 3)


def decode_type(mat_type: int):
    """Split an OpenCV matrix type into ``(dtype, channels)``."""
    depth = mat_type & 7
    channels = (mat_type >> 3) + 1
    if depth not in _DEPTH_TO_DTYPE:
        raise SerializationError(f"Unsupported matrix type: {mat_type}")
    return _DEPTH_TO_DTYPE[depth], channels


def write_mat(filename: Union[str, Path], mat: np.ndarray) -> None:
    """
    Write a 1- or 2-D array (with optional channels) in raw matrix format.

    The file holds five little-endian ``uint32`` words ``magic, type, dims,
    rows, cols`` followed by the row-major element data.  A 1-D array is
    stored as a single column.

    Parameters
    ----------
    filename : str or Path
        Destination file.
    mat : np.ndarray
        Array of shape ``(n,)``, ``(rows, cols)`` or
        ``(rows, cols, channels)``.

    Raises
    ------
    SerializationError
        If the array is empty, has too many dimensions, an unsupported
        dtype, or the file cannot be opened.
    """
    mat = np.asarray(mat)
    if mat.size == 0:
        raise SerializationError("Serialized mat is empty")
    if mat.ndim == 1:
        mat = mat.reshape(-1, 1)
    if mat.ndim == 2:
        channels = 1
    elif mat.ndim == 3:
        channels = mat.shape[2]
    else:
        raise SerializationError(
            f"Serialized mat has more than 2 dimensions: {mat.shape}")

    mat_type = encode_type(mat.dtype, channels)
    header = np.array([MAGIC, mat_type, 2, mat.shape[0], mat.shape[1]],
                      dtype=HEADER)
    payload = np.ascontiguousarray(mat, dtype=mat.dtype.newbyteorder("<"))

    try:
        with open(filename, "wb") as f:
            f.write(header.tobytes())
            f.write(payload.tobytes())
    except OSError as e:
        raise SerializationError(
            f"Failed to open file for writing mat: {filename}") from e


def read_mat(filename: Union[str, Path]) -> np.ndarray:
    """
    Read an array written by ``write_mat``.

    Returns
    -------
    np.ndarray
        Array of shape ``(rows, cols)`` for single-channel data, otherwise
        ``(rows, cols, channels)``.

    Raises
    ------
    SerializationError
        If the file cannot be opened, does not start with the magic number,
        describes more than two dimensions, or is truncated.
    """
    try:
        with open(filename, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise SerializationError(
            f"Failed to open file for reading mat: {filename}") from e

    if len(raw) < 5 * HEADER.itemsize:
        raise SerializationError(f"File does not contain a mat: {filename}")

    magic, mat_type, dims, rows, cols = np.frombuffer(raw, dtype=HEADER, count=5)
    if magic != MAGIC:
        raise SerializationError(f"File does not contain a mat: {filename}")
    if dims > 2:
        raise SerializationError(
            "File contains a mat that is not 1- or 2-dimensional")

    dtype, channels = decode_type(int(mat_type))
    if channels > MAX_CHANNELS:
        raise SerializationError(f"Unsupported matrix type: {mat_type}")

    count = int(rows) * int(cols) * channels
    offset = 5 * HEADER.itemsize
    if len(raw) - offset < count * dtype.itemsize:
        raise SerializationError(f"Mat file is truncated: {filename}")

    data = np.frombuffer(raw, dtype=dtype, count=count, offset=offset)
    data = data.astype(dtype.newbyteorder("="))
    if channels == 1:
        return data.reshape(int(rows), int(cols))
    return data.reshape(int(rows), int(cols), channels)
