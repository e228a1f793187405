"""
Statistical validation of vertical control point candidates.

Candidates are checked against each other by optimizing pitch and roll of
a throwaway single-image panorama; points that disagree with the consensus
are discarded and the rest ranked by error and length.
"""

import math

from plumbline.config import ValidateConfig
from plumbline.lines.fit import vertical_deviation
from plumbline.models import Panorama, PanoramaOptions, Projection, zeroed_copy
from plumbline.optimize.optimizer import PitchRollOptimizer
from plumbline.optimize.statistics import calc_ctrl_pnts_error_stats
from plumbline.tracer import get_tracer, trace


def build_check_panorama(src_image, candidates):
    """Single-image panorama with the candidates attached, pitch and roll free."""
    pano = Panorama(options=PanoramaOptions(projection=Projection.EQUIRECTANGULAR))
    pano.add_image(zeroed_copy(src_image))
    for cp in candidates:
        pano.add_ctrl_point(cp.model_copy(update={"image1_nr": 0, "image2_nr": 0}))
    pano.set_optimize_vector([{"p", "r"}])
    return pano


def merit_score(cp, max_error, length_cap):
    """Lower is better: small optimizer error and long lines score well. max_error must be positive."""
    return cp.error / max_error + (1.0 - min(cp.length(), length_cap) / length_cap)


def _finalize(cp, img_nr):
    return cp.model_copy(update={"image1_nr": img_nr, "image2_nr": img_nr, "error": 0.0})


@trace(label="validate_vertical_lines")
def validate_vertical_lines(src_image, img_nr, candidates, nr_lines, roll, optimizer=None, config=None):
    """
    Best nr_lines vertical control points out of candidates.

    Args:
        src_image: SrcImage the candidates belong to
        img_nr: image index written into the returned points
        candidates: ControlPoint list in source image pixels
        nr_lines: maximum number of points to return
        roll: roll in degrees the single-candidate check is done against
        optimizer: Optimizer (PitchRollOptimizer if None)
        config: ValidateConfig (defaults if None)

    Returns ControlPoint list with error 0, best first.
    """
    tracer = get_tracer()
    config = config or ValidateConfig()

    if not candidates:
        return []

    if len(candidates) == 1:
        cp = candidates[0]
        deviation = vertical_deviation(cp.x2 - cp.x1, cp.y2 - cp.y1, roll)
        if deviation < config.single_line_tolerance:
            return [_finalize(cp, img_nr)]
        tracer.event(f"Single line rejected: deviation={deviation:.3f}")
        return []

    optimizer = optimizer or PitchRollOptimizer()
    pano = build_check_panorama(src_image, candidates)
    optimizer.optimize(pano)

    min_error, max_error, mean, var = calc_ctrl_pnts_error_stats(pano)
    limit = mean + math.sqrt(max(var, 0.0))
    tracer.event(
        f"Errors: min={min_error:.3f} max={max_error:.3f} mean={mean:.3f} "
        f"var={var:.3f} limit={limit:.3f}"
    )

    # relative slack so rounding in mean and var cannot drop the largest of two errors
    slack = 1e-9 * limit
    survivors = [cp for cp in pano.ctrl_points if cp.error <= limit + slack]
    if not survivors:
        return []

    max_error = max(cp.error for cp in survivors)
    if max_error <= 0:
        # no spread to rank by
        tracer.event("All surviving errors are zero, no lines kept", level="WARN")
        return []

    ranked = sorted(
        survivors,
        key=lambda cp: merit_score(cp, max_error, config.merit_length_cap),
    )

    result = [_finalize(cp, img_nr) for cp in ranked[:nr_lines]]
    tracer.event(f"Kept {len(result)} of {len(candidates)} candidates")
    return result
