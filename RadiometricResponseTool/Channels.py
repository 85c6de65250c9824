### Channel Enumeration ###
# File : Channels.py

from enum import IntEnum
from typing import Tuple


class Channel(IntEnum):
    """
    Index of a color channel in a multi-channel dataset.

    Images follow the BGR channel order, so ``CHANNEL0`` is blue,
    ``CHANNEL1`` green and ``CHANNEL2`` red.  Algorithms only use the index;
    names and colors are looked up here for diagnostics and plots.
    """
    CHANNEL0 = 0
    CHANNEL1 = 1
    CHANNEL2 = 2


_BGR_NAMES = {
    Channel.CHANNEL0: "Blue",
    Channel.CHANNEL1: "Green",
    Channel.CHANNEL2: "Red",
}

# Matplotlib RGB colors, (dark, light) per channel
_BGR_COLORS = {
    Channel.CHANNEL0: ((0.12, 0.47, 0.71), (0.65, 0.81, 0.89)),
    Channel.CHANNEL1: ((0.20, 0.63, 0.17), (0.70, 0.87, 0.54)),
    Channel.CHANNEL2: ((0.89, 0.10, 0.11), (0.98, 0.60, 0.60)),
}

_GRAY_COLORS = ((0.2, 0.2, 0.2), (0.7, 0.7, 0.7))


def channel_name(channel: int, num_channels: int = 3) -> str:
    """Display name of *channel*; single-channel data is called ``Gray``."""
    if num_channels == 1:
        return "Gray"
    if channel not in _BGR_NAMES:
        return f"Channel {channel}"
    return _BGR_NAMES[Channel(channel)]


def channel_color(channel: int,
                  num_channels: int = 3,
                  light: bool = False) -> Tuple[float, float, float]:
    """Plot color of *channel* as an RGB tuple in ``[0, 1]``."""
    if num_channels == 1:
        colors = _GRAY_COLORS
    else:
        colors = _BGR_COLORS.get(channel, _GRAY_COLORS)
    return colors[1] if light else colors[0]
