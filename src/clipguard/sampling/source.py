"""
Frame Sources
=============

Boundary contract for anything that can present video frames, plus an
OpenCV-backed implementation for local files.

A frame source exposes:
    - ready_state: 0..4 readiness level (HTML media semantics;
      2 = current frame available, 4 = enough data to play through)
    - width, height: native dimensions (0 when unknown)
    - duration, current_time: seconds
    - muted: mutable, restored by the sampler after capture
    - seek(seconds): best-effort; returns an Event set once settled
    - draw(size): current frame as a (size, size, 3) RGB uint8 array;
      may raise FrameCaptureError (protected content, decode failure)
    - next_frame_event(): optional frame-advance notification
"""

import asyncio
import logging
import math
import threading
from typing import Optional, Protocol, Set

import cv2
import numpy as np

from clipguard.errors import FrameCaptureError, SeekError


logger = logging.getLogger(__name__)


HAVE_NOTHING = 0
HAVE_METADATA = 1
HAVE_CURRENT_DATA = 2
HAVE_FUTURE_DATA = 3
HAVE_ENOUGH_DATA = 4


class FrameSource(Protocol):
    """
    Protocol for frame sources consumed by FrameSampler.
    
    All implementations must provide the attributes and methods below.
    Implementations without a frame-advance notification return None
    from next_frame_event().
    """
    
    muted: bool
    
    @property
    def ready_state(self) -> int:
        ...
    
    @property
    def width(self) -> int:
        ...
    
    @property
    def height(self) -> int:
        ...
    
    @property
    def duration(self) -> float:
        ...
    
    @property
    def current_time(self) -> float:
        ...
    
    def seek(self, seconds: float) -> asyncio.Event:
        ...
    
    async def draw(self, size: int) -> np.ndarray:
        ...
    
    def next_frame_event(self) -> Optional[asyncio.Event]:
        ...


class VideoFileFrameSource:
    """
    Frame source reading a local video file with cv2.VideoCapture.
    
    Each draw() decodes the next frame, so successive captures advance
    through the clip the way a playing video would. Every OpenCV call
    runs in a worker thread under the source lock; properties only read
    values cached by those calls.
    
    Attributes:
        path: Video file path
        muted: Present for protocol compatibility; files have no audio output
        
    Example:
        source = await VideoFileFrameSource.open("clip.mp4")
        try:
            matrix = await sampler.sample(source)
        finally:
            await asyncio.to_thread(source.close)
    """
    
    def __init__(self, path: str) -> None:
        """
        Open the file synchronously. From async code use open().
        """
        self.path = path
        self.muted = False
        # Serializes every capture call; a timed-out job may still be reading
        self._lock = threading.Lock()
        self._seeks: Set[asyncio.Task] = set()
        self._position = 0.0
        self._capture = cv2.VideoCapture(path)
        self._opened = bool(self._capture.isOpened())
        
        if self._opened:
            fps = self._capture.get(cv2.CAP_PROP_FPS) or 0.0
            frames = self._capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
            self._fps = float(fps)
            self._duration = float(frames) / fps if fps > 0 else 0.0
            self._width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            self._height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
            logger.debug(
                f"Opened {path}: {self._width}x{self._height}, "
                f"fps={self._fps:.2f}, duration={self._duration:.2f}s"
            )
        else:
            self._fps = 0.0
            self._duration = 0.0
            self._width = 0
            self._height = 0
            logger.warning(f"Failed to open video: {path}")
    
    @classmethod
    async def open(cls, path: str) -> "VideoFileFrameSource":
        """Open a file without blocking the event loop."""
        return await asyncio.to_thread(cls, path)
    
    @property
    def ready_state(self) -> int:
        return HAVE_ENOUGH_DATA if self._opened else HAVE_NOTHING
    
    @property
    def width(self) -> int:
        return self._width
    
    @property
    def height(self) -> int:
        return self._height
    
    @property
    def duration(self) -> float:
        return self._duration
    
    @property
    def current_time(self) -> float:
        """Position after the last seek or decoded frame."""
        return self._position
    
    def seek(self, seconds: float) -> asyncio.Event:
        """
        Start a seek in a worker thread.
        
        Must be called from within a running event loop.
        
        Returns:
            Event set once the backend has handled the request, whether
            or not it accepted it
            
        Raises:
            SeekError: If the source is closed or the target is invalid
        """
        if not self._opened:
            raise SeekError(f"Cannot seek closed source: {self.path}")
        if not math.isfinite(seconds) or seconds < 0:
            raise SeekError(f"Invalid seek target: {seconds}")
        
        settled = asyncio.Event()
        task = asyncio.get_running_loop().create_task(self._seek(seconds, settled))
        self._seeks.add(task)
        task.add_done_callback(self._seeks.discard)
        return settled
    
    async def draw(self, size: int) -> np.ndarray:
        if not self._opened:
            raise FrameCaptureError(f"Source not open: {self.path}")
        return await asyncio.to_thread(self._read_resized, size)
    
    def next_frame_event(self) -> Optional[asyncio.Event]:
        return None
    
    def close(self) -> None:
        with self._lock:
            if self._opened:
                self._capture.release()
                self._opened = False
    
    async def _seek(self, seconds: float, settled: asyncio.Event) -> None:
        try:
            accepted = await asyncio.to_thread(self._set_position, seconds)
        except cv2.error as e:
            logger.warning(f"Seek to {seconds:.2f}s failed in backend: {e}")
            accepted = False
        finally:
            settled.set()
        
        if not accepted:
            logger.warning(f"Seek to {seconds:.2f}s rejected by backend: {self.path}")
    
    def _set_position(self, seconds: float) -> bool:
        with self._lock:
            if not self._opened:
                return False
            accepted = bool(self._capture.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000.0))
            self._position = float(self._capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0) / 1000.0
        return accepted
    
    def _read_resized(self, size: int) -> np.ndarray:
        with self._lock:
            if not self._opened:
                raise FrameCaptureError(f"Source closed: {self.path}")
            try:
                ok, frame = self._capture.read()
            except cv2.error as e:
                raise FrameCaptureError(f"Decoder error in {self.path}: {e}") from e
            self._position = float(self._capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0) / 1000.0
        if not ok or frame is None:
            raise FrameCaptureError(f"No frame decoded from {self.path}")
        
        try:
            small = cv2.resize(frame, (size, size), interpolation=cv2.INTER_AREA)
            return cv2.cvtColor(small, cv2.COLOR_BGR2RGB)
        except cv2.error as e:
            raise FrameCaptureError(f"Corrupt frame in {self.path}: {e}") from e
