"""
Line extraction from edge masks.

Edge chains are split at corners and every sufficiently long straight
piece becomes a RawLine, tagged valid or rejected by its straightness.
"""

import numpy as np

from plumbline.config import LineConfig
from plumbline.lines.edge_trace import build_edge_graph, trace_edge_chains
from plumbline.models import ControlPoint, LineStatus, RawLine
from plumbline.tracer import get_tracer, trace


def calculate_focal_length_pixels(focal_length, crop_factor, width, height):
    """Focal length in pixels from the physical focal length and crop factor."""
    shorter = min(width, height)
    if crop_factor > 1:
        pixels_per_mm = (crop_factor / 24.0) * shorter
    else:
        pixels_per_mm = (24.0 / crop_factor) * shorter
    return focal_length * pixels_per_mm


@trace(label="find_lines")
def find_lines(edge, length_threshold, focal_length, crop_factor, config=None):
    """
    Extract raw lines from an edge mask (0 = edge).

    Args:
        edge: uint8 edge mask
        length_threshold: minimum line length as fraction of the longest side
        focal_length: physical focal length in mm
        crop_factor: sensor crop factor
        config: LineConfig (defaults if None)

    Returns list of RawLine in detection order.
    """
    tracer = get_tracer()
    config = config or LineConfig()

    height, width = edge.shape[:2]
    min_length = int(length_threshold * max(width, height))
    flpix = calculate_focal_length_pixels(focal_length, crop_factor, width, height)

    graph, endpoints, junctions = build_edge_graph(edge)
    chains = trace_edge_chains(graph, endpoints, junctions)

    lines = []
    for chain in chains:
        if len(chain) < min_length:
            continue
        for piece in split_chain(chain, config.split_tolerance):
            piece = trim_piece(piece, config.corner_trim)
            if len(piece) < min_length:
                continue
            status = line_status(piece, flpix, config.straightness_tolerance)
            lines.append(RawLine(points=piece, status=status))

    valid_count = sum(1 for line in lines if line.status == LineStatus.VALID)
    tracer.event(
        f"Lines: min_length={min_length} flpix={flpix:.1f} "
        f"found={len(lines)} valid={valid_count}"
    )
    return lines


def split_chain(chain, tolerance):
    """Split a chain at the corners found by Ramer-Douglas-Peucker."""
    if len(chain) <= 2:
        return [chain]

    corners = rdp_indices(np.asarray(chain, dtype=np.float64), tolerance)
    return [chain[a:b + 1] for a, b in zip(corners[:-1], corners[1:])]


def rdp_indices(points, epsilon):
    """
    Indices of the points kept by Ramer-Douglas-Peucker simplification.

    Iterative, always includes the first and last index.
    """
    keep = {0, len(points) - 1}
    stack = [(0, len(points) - 1)]

    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        distances = _chord_distances(points[first:last + 1], points[first], points[last])
        offset = int(np.argmax(distances))
        if distances[offset] > epsilon:
            split = first + offset
            keep.add(split)
            stack.append((first, split))
            stack.append((split, last))

    return sorted(keep)


def trim_piece(piece, count):
    """
    Drop `count` points from each end of a split piece.

    Blurred edges round off at corners, and the split point sits on the
    bend, so the first and last few pixels of a piece rarely follow it.
    """
    if count <= 0:
        return piece
    if len(piece) <= 2 * count:
        return []
    return piece[count:len(piece) - count]


def line_status(points, flpix, tolerance):
    """
    Valid if the points stay within tolerance of their best-fit line.

    The line is the total least squares fit through the points. A straight
    edge seen through a lens bends with roughly the focal length as radius,
    so the sagitta of such an arc is allowed on top.
    """
    arr = np.asarray(points, dtype=np.float64)
    chord = float(np.linalg.norm(arr[-1] - arr[0]))
    deviation = float(np.max(_fit_distances(arr)))

    allowance = tolerance
    if flpix > 0:
        allowance += chord * chord / (8.0 * flpix)

    return LineStatus.VALID if deviation <= allowance else LineStatus.REJECTED


def _chord_distances(points, start, end):
    """Perpendicular distances of points to the segment start-end."""
    direction = end - start
    length = np.linalg.norm(direction)
    if length == 0:
        return np.linalg.norm(points - start, axis=1)
    # 2D cross product magnitude
    rel = points - start
    return np.abs(rel[:, 0] * direction[1] - rel[:, 1] * direction[0]) / length


def _fit_distances(points):
    """Perpendicular distances of points to their principal axis."""
    centered = points - points.mean(axis=0)
    # smallest eigenvector of the scatter matrix is the line normal
    _, vectors = np.linalg.eigh(centered.T @ centered)
    return np.abs(centered @ vectors[:, 0])


def scale_lines(lines, scale):
    """Copies of lines with all points multiplied by scale."""
    return [
        RawLine(
            points=[[int(round(x * scale)), int(round(y * scale))] for x, y in line.points],
            status=line.status,
        )
        for line in lines
    ]


def get_line_control_points(line, img_nr, line_nr, count):
    """
    Straight-line control points along one traced line.

    Splits the line into `count` consecutive sections; each section's end
    points form one control point whose mode is the line number.
    """
    points = line.points
    interval = (len(points) - 1) / float(count)
    cps = []
    for k in range(count):
        start = points[int(k * interval)]
        stop = points[int((k + 1) * interval)]
        cps.append(ControlPoint(
            image1_nr=img_nr, x1=start[0], y1=start[1],
            image2_nr=img_nr, x2=stop[0], y2=stop[1],
            mode=line_nr,
        ))
    return cps
