"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

from enum import Enum
from typing import Optional, Tuple, Union
import numpy as np
from .cache_manager import CacheManager
from .camera_models import Camera, create_camera
from .camera_params import CameraParams
from .remap_table import RemapTable, build_remap_table
from .resampler import apply_accurate, apply_fast

CameraLike = Union[Camera, CameraParams, None]


class UndistorterState(Enum):
  UNINITIALIZED = 'uninitialized'
  VALID = 'valid'
  INVALID = 'invalid'


def _as_camera(camera: CameraLike) -> Camera:
  if isinstance(camera, Camera):
    return camera
  return create_camera(camera)


class UndistorterImpl:
  """
  State shared by all copies of an Undistorter: the camera pair, the current
  remap table and the validity state.
  """

  def __init__(self, camera_in: Camera, camera_out: Camera, use_vectorized: bool = True,
               cache_manager: Optional[CacheManager] = None):
    self.camera_in = camera_in
    self.camera_out = camera_out
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager
    self.table: Optional[RemapTable] = None
    self.state = UndistorterState.UNINITIALIZED

  def _build(self, camera_in: Camera, camera_out: Camera) -> Tuple[Optional[RemapTable], bool]:
    return build_remap_table(camera_in, camera_out, use_vectorized=self.use_vectorized)

  def prepare_remap(self) -> bool:
    """Build a new table for the current camera pair and swap it in."""
    if self.cache_manager is not None:
      table, valid = self.cache_manager.get_or_build(self.camera_in, self.camera_out, self._build)
    else:
      table, valid = self._build(self.camera_in, self.camera_out)

    # Readers take the table reference once per call, so a swap never affects them mid-call
    self.table = table if valid else None
    self.state = UndistorterState.VALID if valid else UndistorterState.INVALID
    return valid


class Undistorter:
  """
  Converts images taken by camera_in into images as camera_out would have taken them.

  The remap table is built on construction and reused for every frame. Copies made
  with copy.copy() share the same cameras and table; the shared state is released
  when the last copy goes away.

  Conversions only read the table. Rebuilding replaces it wholesale, and tables
  handed out before a rebuild are never modified. The undistorter does no locking
  itself: callers that convert from several threads while rebuilding must
  serialize prepare_remap() against the conversions they care about.
  """

  def __init__(self, camera_in: CameraLike = None, camera_out: CameraLike = None,
               use_vectorized: bool = True, cache_manager: Optional[CacheManager] = None):
    """
    Initialize the undistorter and build its remap table.

    Parameters:
    - camera_in: camera (or CameraParams) that captures the input images
    - camera_out: camera (or CameraParams) describing the output images
    - use_vectorized: if True, use parallel vectorized table construction
    - cache_manager: optional shared cache of remap tables
    """
    self._impl = UndistorterImpl(_as_camera(camera_in), _as_camera(camera_out),
                                 use_vectorized=use_vectorized, cache_manager=cache_manager)
    self._impl.prepare_remap()

  def __copy__(self):
    other = Undistorter.__new__(Undistorter)
    other._impl = self._impl
    return other

  def shares_state_with(self, other: 'Undistorter') -> bool:
    return self._impl is other._impl

  @property
  def camera_in(self) -> Camera:
    return self._impl.camera_in

  @property
  def camera_out(self) -> Camera:
    return self._impl.camera_out

  @property
  def remap_table(self) -> Optional[RemapTable]:
    """Current table, or None while the undistorter is invalid."""
    return self._impl.table

  @property
  def state(self) -> UndistorterState:
    return self._impl.state

  @property
  def valid(self) -> bool:
    return self._impl.state == UndistorterState.VALID

  def prepare_remap(self, camera_in: CameraLike = None, camera_out: CameraLike = None) -> bool:
    """
    Rebuild the remap table, optionally for a new camera pair.

    Parameters:
    - camera_in, camera_out: replacement cameras; None keeps the current one

    Returns:
    - True if the new table is valid; otherwise the undistorter becomes invalid
    """
    if camera_in is not None:
      self._impl.camera_in = _as_camera(camera_in)
    if camera_out is not None:
      self._impl.camera_out = _as_camera(camera_out)
    return self._impl.prepare_remap()

  def undistort(self, image: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Convert image with bilinear interpolation.

    Returns:
    - (output, True) on success, (copy of image, False) if the undistorter is
      invalid or the image size does not match camera_in
    """
    return apply_accurate(self._impl.table, image)

  def undistort_fast(self, image: np.ndarray) -> Tuple[np.ndarray, bool]:
    """Convert image with nearest-pixel lookup, no interpolation."""
    return apply_fast(self._impl.table, image)

  def __repr__(self):
    return (f"Undistorter(state={self.state.value}, in={self.camera_in.info()}, "
            f"out={self.camera_out.info()})")
