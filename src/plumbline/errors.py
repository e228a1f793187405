"""Exception types for plumbline.

Inside the detection pipeline these are raised by the geometric helpers and
caught at the stage boundary, where the offending candidate is dropped.
"""


class PlumblineError(Exception):
    """Base class for all plumbline errors."""


class PointOutOfBounds(PlumblineError):
    """A mapped point lies outside the pixel bounds of its image."""

    def __init__(self, x, y, width, height):
        super().__init__(f"Point ({x:.1f}, {y:.1f}) outside image {width}x{height}")
        self.x = x
        self.y = y


class InverseTransformUnavailable(PlumblineError):
    """A panorama point has no projection into the source image."""

    def __init__(self, x, y):
        super().__init__(f"Point ({x:.1f}, {y:.1f}) maps outside image")
        self.x = x
        self.y = y


class NoCandidates(PlumblineError):
    """No vertical line survived detection and filtering."""
