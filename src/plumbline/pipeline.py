"""
Vertical line detection pipeline for plumbline.

Runs edge detection, line extraction, fitting, control point synthesis and
statistical validation for one image of a panorama, or for several images
on a thread pool.
"""

from concurrent.futures import ThreadPoolExecutor

from plumbline.config import PipelineConfig
from plumbline.geometry.projection import calc_focal_length
from plumbline.geometry.remap import build_remap_context
from plumbline.io.save_artifacts import draw_raw_lines, draw_segments
from plumbline.lines.control_points import lines_to_control_points
from plumbline.lines.find_lines import find_lines
from plumbline.lines.fit import filter_lines
from plumbline.models import Projection
from plumbline.optimize.validate import validate_vertical_lines
from plumbline.preprocess.edges import apply_mask, detect_edges
from plumbline.tracer import get_tracer, trace


@trace(label="get_vertical_lines")
def get_vertical_lines(pano, img_nr, image, mask=None, nr_lines=5, config=None,
                       optimizer=None, debug_writer=None):
    """
    Detect vertical lines in one image and return them as control points.

    Args:
        pano: Panorama holding the image geometry (read only)
        img_nr: index of the image in pano
        image: decoded RGB or grayscale raster of the image
        mask: optional uint8 opacity mask, 0 = ignore
        nr_lines: maximum number of control points to return
        config: PipelineConfig (defaults if None)
        optimizer: Optimizer used for validation (PitchRollOptimizer if None)
        debug_writer: optional DebugArtifactWriter

    Returns list of ControlPoint with mode X, best first.
    """
    tracer = get_tracer()
    config = config or PipelineConfig()
    edge_cfg = config.edges

    src_image = pano.get_image(img_nr)
    if image.shape[:2] != (src_image.height, src_image.width):
        raise ValueError(
            f"Image size {image.shape[1]}x{image.shape[0]} does not match "
            f"{src_image.width}x{src_image.height} of image {img_nr}"
        )

    needs_remap = src_image.projection != Projection.RECTILINEAR
    roll = 0.0 if needs_remap else src_image.roll
    transform = None

    with tracer.span("edges", module="pipeline", remap=needs_remap):
        if not needs_remap:
            work_image = image
            edge, size_factor = detect_edges(
                image, edge_cfg.scale, edge_cfg.threshold,
                edge_cfg.resize_dimension, edge_cfg.gradient_gain,
            )
            edge = apply_mask(edge, mask)
        else:
            context = build_remap_context(src_image, image, mask, config)
            work_image = context.image
            transform = context.transform
            # no resizing of the remapped image
            height, width = context.image.shape[:2]
            edge, size_factor = detect_edges(
                context.image, edge_cfg.scale, edge_cfg.threshold,
                max(width, height) + 10, edge_cfg.gradient_gain,
            )
            edge = apply_mask(edge, context.mask)

    focal_length = src_image.exif_focal_length
    if focal_length == 0:
        focal_length = calc_focal_length(
            src_image.projection, src_image.hfov, src_image.crop_factor,
            src_image.width, src_image.height,
        )

    with tracer.span("lines", module="pipeline"):
        raw_lines = find_lines(
            edge, config.lines.length_threshold, focal_length, src_image.crop_factor, config.lines,
        )
        vertical = filter_lines(raw_lines, roll, config.filter)

    if not vertical:
        tracer.event(f"No vertical lines in image {img_nr}")
        return []

    candidates = lines_to_control_points(
        vertical, src_image.width, src_image.height, img_nr,
        size_factor=size_factor, transform=transform,
    )
    result = validate_vertical_lines(
        src_image, img_nr, candidates, nr_lines, roll,
        optimizer=optimizer, config=config.validate,
    )

    if debug_writer:
        debug_writer.save_image(edge, "01_edges.png")
        debug_writer.save_image(draw_raw_lines(work_image, raw_lines), "02_raw_lines.png")
        debug_writer.save_image(
            draw_segments(work_image, [(line.start, line.end) for line in vertical]),
            "03_vertical_lines.png",
        )
        debug_writer.save_image(
            draw_segments(image, [((cp.x1, cp.y1), (cp.x2, cp.y2)) for cp in result], color=(0, 0, 255)),
            "04_control_points.png",
        )
        debug_writer.save_json(candidates, "candidates.json")
        debug_writer.save_json(result, "control_points.json")

    tracer.event(f"Image {img_nr}: {len(result)} vertical control points")
    return result


@trace(label="get_vertical_lines_for_images")
def get_vertical_lines_for_images(pano, images, nr_lines=5, config=None, optimizer=None, max_workers=None):
    """
    Detect vertical lines in several images concurrently.

    Args:
        pano: Panorama holding the image geometry (read only)
        images: dict of image index -> (raster, mask or None)
        nr_lines: maximum number of control points per image
        max_workers: thread pool size (executor default if None)

    Returns all control points ordered by image index. Only the optimizer
    runs are serialised, by the optimizer's lock.
    """
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="vlines") as executor:
        futures = {
            img_nr: executor.submit(
                get_vertical_lines, pano, img_nr, image, mask, nr_lines, config, optimizer,
            )
            for img_nr, (image, mask) in images.items()
        }

    cps = []
    for img_nr in sorted(futures):
        cps.extend(futures[img_nr].result())
    return cps
