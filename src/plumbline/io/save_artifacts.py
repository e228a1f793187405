"""
Artifact saving utilities for plumbline.

Writes debug images and JSON files for the stages of one image.
"""

import json
import os

import cv2
import numpy as np

from plumbline.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_image(img, path, max_edge=None):
    """
    Save an RGB or grayscale image to disk.

    Optionally downscales to max_edge while preserving aspect ratio.
    """
    tracer = get_tracer()

    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (int(img.shape[1] * scale), int(img.shape[0] * scale))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_AREA)

    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, img)
    tracer.event(f"Saved image: {path}", level="DEBUG")


def save_json(data, path, indent=2):
    """Save a dictionary, list or Pydantic model to JSON."""
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if hasattr(d, "model_dump") else d for d in data]

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}", level="DEBUG")


def draw_segments(base_img, segments, color=(255, 0, 0), thickness=2):
    """
    Draw straight segments on a copy of an image.

    segments: list of ((x1, y1), (x2, y2)); returns an RGB image.
    """
    if base_img.ndim == 2:
        overlay = cv2.cvtColor(base_img, cv2.COLOR_GRAY2RGB)
    else:
        overlay = base_img.copy()

    for (x1, y1), (x2, y2) in segments:
        cv2.line(overlay, (int(round(x1)), int(round(y1))), (int(round(x2)), int(round(y2))),
                 color, thickness)
    return overlay


def draw_raw_lines(base_img, lines, valid_color=(0, 200, 0), rejected_color=(200, 0, 200)):
    """Draw traced raw lines, colored by status."""
    from plumbline.models import LineStatus

    if base_img.ndim == 2:
        overlay = cv2.cvtColor(base_img, cv2.COLOR_GRAY2RGB)
    else:
        overlay = base_img.copy()

    for line in lines:
        pts = np.array(line.points, dtype=np.int32)
        color = valid_color if line.status == LineStatus.VALID else rejected_color
        cv2.polylines(overlay, [pts], isClosed=False, color=color, thickness=1)
    return overlay


class DebugArtifactWriter:
    """
    Saves debug artifacts of a single image into out_dir/debug/<image_id>/.
    """

    def __init__(self, out_dir, image_id, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.image_id = image_id
        self.enabled = enabled
        self.max_edge = max_edge

    def get_dir(self):
        debug_dir = os.path.join(self.out_dir, "debug", self.image_id)
        ensure_dir(debug_dir)
        return debug_dir

    def save_image(self, img, filename):
        if not self.enabled:
            return
        save_image(img, os.path.join(self.get_dir(), filename), max_edge=self.max_edge)

    def save_json(self, data, filename):
        if not self.enabled:
            return
        save_json(data, os.path.join(self.get_dir(), filename))
