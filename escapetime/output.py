"""Output sinks that persist finished frame buffers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol

import imageio
import numpy as np
import PIL.Image


class FrameSink(Protocol):
    """Receives completed frames; the sink owns presentation and persistence."""

    def write(self, frame: np.ndarray) -> None:
        ...

    def close(self) -> None:
        ...


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_single_image(frame: np.ndarray, output_path: Path, image_format: str) -> None:
    """Write a single frame to ``output_path`` using the provided format."""

    pil_format = _pil_format_name(image_format)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    PIL.Image.fromarray(frame).save(str(output_path), format=pil_format)


class ImageSink:
    """Keeps the latest frame and encodes it once on close."""

    def __init__(self, path: Path, image_format: str = "png") -> None:
        self.path = Path(path)
        self.image_format = image_format
        self._last: Optional[np.ndarray] = None

    def write(self, frame: np.ndarray) -> None:
        self._last = frame.copy()

    def close(self) -> None:
        if self._last is not None:
            write_single_image(self._last, self.path, self.image_format)
            self._last = None


class FrameSequenceSink:
    """Persist each frame as a numbered image inside ``frame_dir``."""

    def __init__(self, frame_dir: Path, image_format: str = "png", *, digits: int = 4, prefix: str = "frame") -> None:
        self.frame_dir = Path(frame_dir)
        self.image_format = image_format
        self.digits = digits
        self.prefix = prefix
        self.index = 0

    def write(self, frame: np.ndarray) -> None:
        pil_format = _pil_format_name(self.image_format)
        frame_path = self.frame_dir / f"{self.prefix}{self.index:0{self.digits}d}.{self.image_format}"
        self.frame_dir.mkdir(parents=True, exist_ok=True)
        PIL.Image.fromarray(frame).save(str(frame_path), format=pil_format)
        self.index += 1

    def close(self) -> None:
        pass


class GifSink:
    """Append every frame to an animated GIF."""

    def __init__(self, path: Path, *, duration: float = 0.1) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._writer: Any = imageio.get_writer(str(self.path), mode='I', duration=duration, loop=0)

    def write(self, frame: np.ndarray) -> None:
        self._writer.append_data(frame)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
