# obstacle_alert/frames/frame_types.py

import numpy as np
from typing import Any, Tuple


class InvalidInput(ValueError):
    """Raised when a buffer does not match its declared dimensions."""


class _Frame:
    """
    Row-major 2-D buffer with declared width and height.

    Subclasses fix the element type. The buffer is stored flat; ``as_array``
    returns a (height, width) view without copying.
    """

    kind = "frame"

    def __init__(self, width: int, height: int, data: Any):
        """
        Initialize the frame.

        Args:
            width: Number of columns (>= 1)
            height: Number of rows (>= 1)
            data: Flat buffer of exactly ``width * height`` elements

        Raises:
            InvalidInput: If the dimensions or the buffer length are inconsistent
        """
        if data is None:
            raise InvalidInput(f"{self.kind} buffer is missing")

        self._width = int(width)
        self._height = int(height)
        self._data = np.ravel(self._coerce(np.asarray(data)))
        self.validate()

    @classmethod
    def from_array(cls, array: Any):
        """
        Build a frame from a 2-D (height, width) array.

        Args:
            array: Array-like of shape (H, W)

        Returns:
            Frame instance
        """
        array = np.asarray(array)
        if array.ndim != 2:
            raise InvalidInput(f"{cls.kind} array must be 2-D, got shape {array.shape}")
        height, width = array.shape
        return cls(width, height, array)

    def _coerce(self, data: np.ndarray) -> np.ndarray:
        return data

    def validate(self) -> None:
        """Check that the buffer holds exactly width * height elements."""
        if self._width < 1 or self._height < 1:
            raise InvalidInput(
                f"{self.kind} dimensions must be >= 1, got {self._width}x{self._height}")
        expected = self._width * self._height
        if self._data.size != expected:
            raise InvalidInput(
                f"{self.kind} buffer has {self._data.size} elements, "
                f"expected {expected} for {self._width}x{self._height}")

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def shape(self) -> Tuple[int, int]:
        """Shape as (height, width), numpy order."""
        return self._height, self._width

    @property
    def data(self) -> np.ndarray:
        """Flat row-major buffer."""
        return self._data

    def as_array(self) -> np.ndarray:
        """Return the buffer as a (height, width) view."""
        return self._data.reshape(self._height, self._width)

    def __repr__(self):
        return f"{type(self).__name__}(width={self._width}, height={self._height})"


class DepthFrame(_Frame):
    """
    Dense depth map in meters.

    A sample of 0 or a non-finite value means the sensor has no reading for
    that pixel.
    """

    kind = "depth"

    def _coerce(self, data: np.ndarray) -> np.ndarray:
        if not (np.issubdtype(data.dtype, np.floating) or np.issubdtype(data.dtype, np.integer)):
            raise InvalidInput(f"depth buffer must be numeric, got dtype {data.dtype}")
        return data.astype(np.float32, copy=False)


class SegmentationMask(_Frame):
    """
    Dense per-pixel class ids produced by a semantic classifier.

    Id 0 is background. Ids are not checked against any class table.
    """

    kind = "mask"

    def _coerce(self, data: np.ndarray) -> np.ndarray:
        if data.dtype == bool:
            return data.astype(np.int32)
        if not np.issubdtype(data.dtype, np.integer):
            raise InvalidInput(f"mask buffer must hold integer class ids, got dtype {data.dtype}")
        return data

    def class_at(self, x: int, y: int) -> int:
        """Return the class id at column ``x``, row ``y``."""
        return int(self._data[y * self._width + x])
