"""
Conversion of fitted lines into vertical control points in source pixels.
"""

from plumbline.errors import InverseTransformUnavailable, PointOutOfBounds
from plumbline.models import ControlPoint, ControlPointMode
from plumbline.tracer import get_tracer, trace


def check_in_bounds(x, y, width, height):
    """Raise PointOutOfBounds unless 0 <= x < width and 0 <= y < height."""
    if not (0 <= x < width and 0 <= y < height):
        raise PointOutOfBounds(x, y, width, height)


def map_line_endpoints(line, size_factor=1.0, transform=None):
    """
    Source image coordinates of a fitted line's endpoints.

    Uses the remap transform when given, otherwise scales by size_factor.
    Returns ((x1, y1), (x2, y2)).
    """
    if transform is None:
        return (
            (line.start[0] * size_factor, line.start[1] * size_factor),
            (line.end[0] * size_factor, line.end[1] * size_factor),
        )
    return (
        transform.transform_img_coord(line.start[0], line.start[1]),
        transform.transform_img_coord(line.end[0], line.end[1]),
    )


@trace(label="lines_to_control_points")
def lines_to_control_points(lines, width, height, img_nr=0, size_factor=1.0, transform=None):
    """
    Vertical control points for fitted lines.

    Lines whose endpoints cannot be mapped back or fall outside the
    width x height image are dropped.
    """
    tracer = get_tracer()

    cps = []
    for line in lines:
        try:
            (x1, y1), (x2, y2) = map_line_endpoints(line, size_factor, transform)
            check_in_bounds(x1, y1, width, height)
            check_in_bounds(x2, y2, width, height)
        except (InverseTransformUnavailable, PointOutOfBounds) as e:
            tracer.event(f"Dropped line: {e}", level="DEBUG")
            continue

        cps.append(ControlPoint(
            image1_nr=img_nr, x1=x1, y1=y1,
            image2_nr=img_nr, x2=x2, y2=y2,
            mode=ControlPointMode.X,
        ))

    tracer.event(f"Control point candidates: {len(cps)} of {len(lines)} lines")
    return cps
