"""
motion_analyzer.py

Extracts per-tick motion and color signal from one video frame and the previous one.

The frame is downscaled to a fixed processing resolution, every Nth pixel is
sampled, and the sampled pixels are compared against the previous tick's
snapshot. Moving pixels drive intensity and the foam height estimate; pixels
with a much larger change count toward the bubble rate proxy.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from lab_telemetry.errors import ConfigurationError
from lab_telemetry.utils import round_half_up


@dataclass(frozen=True)
class RawFrameMetrics:
    intensity: int = 0
    foam_height: float = 0.0
    bubble_count: int = 0
    color_r: int = 0
    color_g: int = 0
    color_b: int = 0
    moving_pixels: int = 0
    sampled_pixels: int = 0
    skipped: bool = False

    @classmethod
    def skipped_tick(cls):
        """Frame unreadable this tick: nothing should be emitted."""
        return cls(skipped=True)

    @classmethod
    def unavailable(cls):
        """Video source gone: zero-valued video metrics, sample still emitted."""
        return cls()


class MotionAnalyzer:
    def __init__(self, frame_size=(320, 240), pixel_stride=4, motion_threshold=30,
                 bubble_threshold=100, reference_fraction=0.20, bubble_scale_divisor=10,
                 height_scale_cm=20.0, activity_threshold=5):
        """
        Args:
            frame_size: Processing resolution (width, height).
            pixel_stride: Sample every Nth pixel in row-major order.
            motion_threshold: Summed channel difference above which a pixel is moving.
            bubble_threshold: Stricter difference for high-contrast (bubble) pixels.
            reference_fraction: Fraction of sampled pixels in motion that saturates intensity.
            bubble_scale_divisor: High-contrast pixels per bubble-rate unit.
            height_scale_cm: Foam height reported when motion reaches the top row.
            activity_threshold: Foam height is only reported above this intensity.
        """
        width, height = int(frame_size[0]), int(frame_size[1])
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"frame_size must be positive, got {frame_size}")
        if int(pixel_stride) < 1:
            raise ConfigurationError("pixel_stride must be >= 1")
        if not 0 <= motion_threshold <= bubble_threshold:
            raise ConfigurationError("thresholds must satisfy 0 <= motion_threshold <= bubble_threshold")
        if not 0 < reference_fraction <= 1:
            raise ConfigurationError("reference_fraction must be within (0, 1]")
        if bubble_scale_divisor <= 0:
            raise ConfigurationError("bubble_scale_divisor must be positive")
        self.width = width
        self.height = height
        self.pixel_stride = int(pixel_stride)
        self.motion_threshold = motion_threshold
        self.bubble_threshold = bubble_threshold
        self.reference_fraction = float(reference_fraction)
        self.bubble_scale_divisor = float(bubble_scale_divisor)
        self.height_scale_cm = float(height_scale_cm)
        self.activity_threshold = activity_threshold
        # Flat pixel index of every sampled pixel; row = index // width.
        self._sample_index = np.arange(0, width * height, self.pixel_stride)
        self._sample_rows = self._sample_index // width
        self._previous = None

    @classmethod
    def from_config(cls, config):
        return cls(
            frame_size=config.frame_size,
            pixel_stride=config.pixel_stride,
            motion_threshold=config.motion_threshold,
            bubble_threshold=config.bubble_threshold,
            reference_fraction=config.reference_fraction,
            bubble_scale_divisor=config.bubble_scale_divisor,
            height_scale_cm=config.height_scale_cm,
            activity_threshold=config.activity_threshold,
        )

    @property
    def sampled_pixel_count(self):
        return int(self._sample_index.shape[0])

    @property
    def has_snapshot(self):
        return self._previous is not None

    def reset(self):
        """Drop the previous-frame snapshot (session start/stop)."""
        self._previous = None

    def process_image(self, frame):
        """
        Downscale a frame to the processing resolution.
        Returns:
            np.ndarray: uint8 RGB image (height, width, 3), or None if unreadable.
        """
        if frame is None:
            return None
        img = np.asarray(frame)
        if img.ndim != 3 or img.shape[2] < 3 or img.shape[0] == 0 or img.shape[1] == 0:
            return None
        img = img[..., :3]
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)
        if img.shape[0] != self.height or img.shape[1] != self.width:
            img = cv2.resize(np.ascontiguousarray(img), (self.width, self.height), interpolation=cv2.INTER_AREA)
        return img

    def sample_pixels(self, img):
        # int16 so channel differences cannot wrap
        return img.reshape(-1, 3)[self._sample_index].astype(np.int16)

    def analyze(self, frame):
        """
        Main entry point: downscale, sample, compare with the previous snapshot.
        The sampled pixels replace the snapshot on success.
        Returns:
            RawFrameMetrics
        """
        img = self.process_image(frame)
        if img is None:
            return RawFrameMetrics.skipped_tick()

        pixels = self.sample_pixels(img)
        sampled = pixels.shape[0]
        sums = pixels.sum(axis=0, dtype=np.int64)
        color_r, color_g, color_b = (round_half_up(s / sampled) for s in sums)

        previous = self._previous
        self._previous = pixels

        if previous is None:
            return RawFrameMetrics(color_r=color_r, color_g=color_g, color_b=color_b, sampled_pixels=sampled)

        diff = np.abs(pixels - previous).sum(axis=1)
        moving = diff > self.motion_threshold
        high_contrast = moving & (diff > self.bubble_threshold)
        moving_count = int(np.count_nonzero(moving))
        high_count = int(np.count_nonzero(high_contrast))

        intensity = min(100, round_half_up(moving_count / (sampled * self.reference_fraction) * 100))
        bubble_count = round_half_up(high_count / self.bubble_scale_divisor)

        foam_height = 0.0
        if moving_count and intensity > self.activity_threshold:
            min_row = int(self._sample_rows[moving].min())
            height_cm = (self.height - min_row) / self.height * self.height_scale_cm
            foam_height = round_half_up(height_cm * 10) / 10

        return RawFrameMetrics(
            intensity=intensity,
            foam_height=foam_height,
            bubble_count=bubble_count,
            color_r=color_r,
            color_g=color_g,
            color_b=color_b,
            moving_pixels=moving_count,
            sampled_pixels=sampled,
        )
