import numpy as np
from matplotlib.figure import Figure
from matplotlib.backends.backend_agg import FigureCanvasAgg
from typing import Optional, Sequence, Tuple

from .Channels import channel_color

DPI = 100


def plot_radiometric_response(response: np.ndarray,
                              size: Tuple[int, int] = (500, 500),
                              samples: Optional[Sequence] = None,
                              channel: Optional[int] = None,
                              num_channels: Optional[int] = None) -> np.ndarray:
    """
    Render an inverse response curve to an RGB image.

    Drawing happens on an off-screen Agg canvas, so this works without a
    window system.  The returned image can be shown with ``plt.imshow`` or
    handed to any other viewer.

    Parameters
    ----------
    response : np.ndarray
        Curve of shape ``(256,)`` or ``(256, channels)``.
    size : tuple of int, optional
        ``(width, height)`` of the image in pixels.  Default ``(500, 500)``.
    samples : sequence of (np.ndarray, np.ndarray), optional
        Observations to scatter behind the curve, given as
        ``(brightness, irradiance)`` pairs of arrays in the same units as
        *response*.
    channel : int, optional
        Channel index used to pick the curve color when *response* holds a
        single channel of a multi-channel dataset.
    num_channels : int, optional
        Number of channels of the dataset *channel* belongs to.

    Returns
    -------
    image : np.ndarray
        ``uint8`` array of shape ``(height, width, 3)``.
    """
    response = np.asarray(response, dtype=np.float64)
    if response.ndim == 1:
        response = response.reshape(-1, 1)

    width, height = size
    fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI)
    canvas = FigureCanvasAgg(fig)
    ax = fig.add_subplot(1, 1, 1)

    levels = np.arange(response.shape[0])
    for c in range(response.shape[1]):
        if channel is not None:
            index, total = channel, (num_channels or 3)
        else:
            index, total = c, response.shape[1]

        if samples is not None:
            for brightness, irradiance in samples:
                ax.scatter(brightness, irradiance, s=4,
                           color=channel_color(index, total, light=True))
        ax.plot(levels, response[:, c], color=channel_color(index, total))

    ax.set_xlim(0, response.shape[0] - 1)
    ax.set_xlabel("Brightness")
    ax.set_ylabel("Irradiance")
    fig.tight_layout()

    canvas.draw()
    image = np.asarray(canvas.buffer_rgba())[:, :, :3].copy()
    return image
