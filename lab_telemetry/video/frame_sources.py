"""
frame_sources.py

Pull-based frame source adapters. Each adapter owns its device handle and hands
out the current frame as an RGB numpy array on demand.

read_frame() raises TransientFrameError when no frame is ready this tick and
SourceUnavailable when the device is missing or has been closed.
"""

import cv2
import mss
from mss.exception import ScreenShotError
import numpy as np

from lab_telemetry.errors import SourceUnavailable, TransientFrameError


class CameraFrameSource:
    def __init__(self, device_index=0):
        self.device_index = device_index
        self.capture = None
        # Non-fatal init: the session degrades the video channel if the camera is missing.
        try:
            self.capture = cv2.VideoCapture(device_index)
            if not self.capture.isOpened():
                print(f"[VIDEO] Camera {device_index} could not be opened.")
                self.capture.release()
                self.capture = None
            else:
                print(f"[VIDEO] Camera {device_index} opened.")
        except cv2.error as e:
            print(f"[VIDEO] Camera {device_index} init failed: {e}")
            self.capture = None

    def read_frame(self):
        if self.capture is None:
            raise SourceUnavailable(f"camera {self.device_index} is not open")
        ok, frame = self.capture.read()
        if not ok or frame is None:
            raise TransientFrameError(f"camera {self.device_index} has no frame ready")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def close(self):
        if self.capture is not None:
            self.capture.release()
            print(f"[VIDEO] Camera {self.device_index} released.")
        self.capture = None


class ScreenFrameSource:
    """Uses a monitor as the video feed (handy for a lab bench shown on screen)."""

    def __init__(self, monitor_index=1):
        self.monitor_index = monitor_index
        self.closed = False

    def read_frame(self):
        if self.closed:
            raise SourceUnavailable("screen source is closed")
        try:
            with mss.mss() as sct:
                if self.monitor_index >= len(sct.monitors):
                    raise SourceUnavailable(f"monitor {self.monitor_index} does not exist")
                img = np.array(sct.grab(sct.monitors[self.monitor_index]))
        except ScreenShotError as e:
            raise TransientFrameError(f"screen capture failed: {e}") from e
        # Convert BGRA to RGB
        return img[..., :3][..., ::-1]

    def close(self):
        self.closed = True


class StaticFrameSource:
    """Replays a fixed list of frames; the last frame repeats once the list is exhausted."""

    def __init__(self, frames, loop=False):
        self.frames = list(frames)
        self.loop = loop
        self.position = 0
        self.closed = False

    def read_frame(self):
        if self.closed:
            raise SourceUnavailable("static source is closed")
        if not self.frames:
            raise TransientFrameError("static source has no frames")
        if self.position >= len(self.frames):
            index = self.position % len(self.frames) if self.loop else len(self.frames) - 1
        else:
            index = self.position
        self.position += 1
        frame = self.frames[index]
        if frame is None:
            raise TransientFrameError("frame not ready")
        return frame

    def close(self):
        self.closed = True
