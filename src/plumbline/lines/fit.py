"""
Least-squares fitting of raw lines and filtering of vertical candidates.
"""

import math

import numpy as np

from plumbline.config import FilterConfig
from plumbline.models import FittedLine, LineStatus
from plumbline.tracer import get_tracer, trace


def get_footpoint(p, p1, p2):
    """
    Orthogonal projection of p onto the line through p1 and p2.

    Returns (footpoint, u) where u is the line parameter (0 at p1, 1 at p2).
    """
    diff_x = p2[0] - p1[0]
    diff_y = p2[1] - p1[1]
    u = ((p[0] - p1[0]) * diff_x + (p[1] - p1[1]) * diff_y) / (diff_x * diff_x + diff_y * diff_y)
    return [p1[0] + u * diff_x, p1[1] + u * diff_y], u


def fit_line(line):
    """
    Fit a straight segment to a raw line.

    Linear regression of y on x; the fitted segment spans the footpoints of
    the first and last point. Numerically vertical lines become a vertical
    segment at the mean x.
    """
    points = np.asarray(line.points, dtype=np.float64)
    xs = points[:, 0]
    ys = points[:, 1]

    mean_x = float(np.mean(xs))
    mean_y = float(np.mean(ys))
    var_x = float(np.mean(xs * xs)) - mean_x * mean_x

    if abs(var_x) < 1e-5:
        return FittedLine(start=[mean_x, ys[0]], end=[mean_x, ys[-1]])

    cov_xy = float(np.mean(xs * ys)) - mean_x * mean_y
    slope = cov_xy / var_x
    offset = mean_y - slope * mean_x

    p1 = (0.0, offset)
    p2 = (100.0, 100.0 * slope + offset)
    start, _ = get_footpoint(points[0], p1, p2)
    end, _ = get_footpoint(points[-1], p1, p2)
    return FittedLine(start=start, end=end)


def vertical_deviation(dx, dy, roll):
    """Sine of the angle between (dx, dy) and the image vertical at roll degrees."""
    length = math.hypot(dx, dy)
    if length == 0:
        return math.inf
    roll_rad = math.radians(roll)
    return abs(dx * math.cos(roll_rad) + dy * math.sin(roll_rad)) / length


def find_close_line(candidate, accepted, config):
    """Index of the first accepted line that duplicates the candidate, or None."""
    for idx, other in enumerate(accepted):
        if candidate.estimated_distance(other, config.overshoot) >= config.duplicate_distance:
            continue
        if abs(candidate.angle() - other.angle()) < config.duplicate_angle:
            return idx
    return None


@trace(label="filter_lines")
def filter_lines(lines, roll, config=None):
    """
    Fitted lines that are long and close to vertical.

    Lines are taken in detection order; a line that duplicates an accepted
    one (close and parallel) either replaces it, if longer, or is dropped.
    """
    tracer = get_tracer()
    config = config or FilterConfig()

    accepted = []
    rejected_short = 0
    rejected_angle = 0
    merged = 0

    for line in lines:
        if line.status != LineStatus.VALID or len(line.points) <= 2:
            continue

        fitted = fit_line(line)
        length = fitted.length()
        if length <= config.min_length:
            rejected_short += 1
            continue

        if vertical_deviation(fitted.dx, fitted.dy, roll) >= config.vertical_tolerance:
            rejected_angle += 1
            continue

        idx = find_close_line(fitted, accepted, config)
        if idx is None:
            accepted.append(fitted)
            continue

        merged += 1
        if length > accepted[idx].length():
            accepted[idx] = fitted

    tracer.event(
        f"Vertical lines: kept={len(accepted)} short={rejected_short} "
        f"tilted={rejected_angle} merged={merged}"
    )
    return accepted
