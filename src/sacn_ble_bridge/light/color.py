"""RGB to HSV conversion for the fixture colour command."""

from __future__ import annotations

from typing import Tuple


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def rgb_to_hsv(red: int, green: int, blue: int) -> Tuple[int, int, int]:
    """
    Convert 8-bit RGB to (hue 0-360, saturation 0-100, value 0-100).

    The hue formula is picked from the channel that holds the maximum,
    compared on the integer inputs. Ties resolve red, then green, then
    blue; tied channels give the same hue either way.
    """
    r = red / 255.0
    g = green / 255.0
    b = blue / 255.0

    if red >= green and red >= blue:
        max_channel, maximum = "r", r
    elif green >= blue:
        max_channel, maximum = "g", g
    else:
        max_channel, maximum = "b", b
    minimum = min(r, g, b)
    delta = maximum - minimum

    if red == green == blue:
        hue = 0.0
    elif max_channel == "r":
        hue = 60.0 * ((g - b) / delta)
    elif max_channel == "g":
        hue = 60.0 * ((b - r) / delta + 2.0)
    else:
        hue = 60.0 * ((r - g) / delta + 4.0)

    if hue < 0.0:
        hue += 360.0

    saturation = 0.0 if maximum == 0.0 else delta / maximum

    return (
        _round_half_up(hue),
        _round_half_up(saturation * 100.0),
        _round_half_up(maximum * 100.0),
    )
