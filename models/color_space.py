from enum import Enum


class ColorSpace(Enum):
    RGB = "rgb"
    LAB = "lab"  # L*a*b* remapped into 8-bit channels


class LabChannel(Enum):
    """Colour-opponent channels of an L*a*b* encoded image."""
    A = 1  # green-red
    B = 2  # blue-yellow
