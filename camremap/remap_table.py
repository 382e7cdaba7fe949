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

import time
import numpy as np
from typing import Optional, Tuple
from .camera_models import Camera
from .parallel import run_row_chunks

INVALID = -1  # Sentinel for output pixels whose source lies outside the input image
GRID_SNAP_TOLERANCE = 1e-6  # Source coordinates this close to a pixel center snap onto it


def _snap_to_grid(src) -> np.ndarray:
  """
  Snap source coordinates within GRID_SNAP_TOLERANCE of an integer onto that integer.

  project(unproject(p)) is a floating-point round trip, so identical cameras give
  values like -8.9e-16 for column 0 that would otherwise fall outside the image.
  """
  src = np.asarray(src, dtype=np.float64)
  with np.errstate(invalid='ignore'):
    nearest = np.round(src) + 0.0  # + 0.0 turns -0.0 into 0.0
    return np.where(np.abs(src - nearest) < GRID_SNAP_TOLERANCE, nearest, src)


def _index_dtype(in_width: int, in_height: int):
  """Smallest signed integer type able to address every input pixel."""
  if in_width * in_height < np.iinfo(np.int32).max:
    return np.int32
  return np.int64


class RemapTable:
  """
  Precomputed source-sampling table for one (input camera, output camera) pair.

  All arrays are flat over the out_width * out_height output pixels (row-major):
  - src_x, src_y: float32 source coordinates in the input image, -1 if invalid
  - fast_index: flattened nearest input pixel floor(x) + in_width * floor(y), -1 if invalid
  - neighbor_idx: (N, 4) flattened indices of the top-left, top-right, bottom-left and
    bottom-right input pixels around the source coordinate, 0 if invalid
  - neighbor_weight: (N, 4) bilinear weights for neighbor_idx, 0 if invalid

  build_remap_table() freezes the arrays before returning the table; rebuilding
  produces a new table.
  """

  def __init__(self, in_width: int, in_height: int, out_width: int, out_height: int,
               src_x: np.ndarray, src_y: np.ndarray, fast_index: np.ndarray,
               neighbor_idx: np.ndarray, neighbor_weight: np.ndarray):
    self.in_width = in_width
    self.in_height = in_height
    self.out_width = out_width
    self.out_height = out_height
    self.src_x = src_x
    self.src_y = src_y
    self.fast_index = fast_index
    self.neighbor_idx = neighbor_idx
    self.neighbor_weight = neighbor_weight

  @classmethod
  def allocate(cls, in_width: int, in_height: int, out_width: int, out_height: int) -> 'RemapTable':
    """Create a writable table with every output pixel marked invalid."""
    size = out_width * out_height
    index_dtype = _index_dtype(in_width, in_height)
    return cls(
      in_width, in_height, out_width, out_height,
      src_x=np.full(size, INVALID, dtype=np.float32),
      src_y=np.full(size, INVALID, dtype=np.float32),
      fast_index=np.full(size, INVALID, dtype=index_dtype),
      neighbor_idx=np.zeros((size, 4), dtype=index_dtype),
      neighbor_weight=np.zeros((size, 4), dtype=np.float32)
    )

  def freeze(self) -> 'RemapTable':
    """Mark all arrays read-only and return self."""
    for array in self._arrays():
      array.flags.writeable = False
    return self

  def _arrays(self):
    return (self.src_x, self.src_y, self.fast_index, self.neighbor_idx, self.neighbor_weight)

  @property
  def size(self) -> int:
    return self.out_width * self.out_height

  @property
  def nbytes(self) -> int:
    return sum(array.nbytes for array in self._arrays())

  def valid_mask(self) -> np.ndarray:
    """Boolean array, True for output pixels with a source inside the input image."""
    return self.src_x >= 0

  def num_valid(self) -> int:
    return int(np.count_nonzero(self.valid_mask()))

  def to_opencv_maps(self) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return (map_x, map_y) as out_height x out_width float32 arrays for cv2.remap.

    Invalid pixels keep the -1 sentinel, which cv2.remap treats as a border pixel.
    """
    shape = (self.out_height, self.out_width)
    return self.src_x.reshape(shape).copy(), self.src_y.reshape(shape).copy()

  def equals(self, other: 'RemapTable') -> bool:
    """Bit-identical comparison of two tables."""
    if not isinstance(other, RemapTable):
      return False
    if ((self.in_width, self.in_height, self.out_width, self.out_height) !=
        (other.in_width, other.in_height, other.out_width, other.out_height)):
      return False
    return all(a.dtype == b.dtype and a.tobytes() == b.tobytes()
               for a, b in zip(self._arrays(), other._arrays()))

  def __repr__(self):
    return (f"RemapTable(in={self.in_width}x{self.in_height}, "
            f"out={self.out_width}x{self.out_height}, valid={self.num_valid()}/{self.size})")


def _store_source_coordinates(table: RemapTable, start: int, end: int, src: np.ndarray) -> None:
  """
  Fill table entries [start, end) from projected source coordinates.

  Parameters:
  - table: writable table from RemapTable.allocate
  - start, end: range of flat output pixel indices
  - src: (end - start, 2) float64 source coordinates, NaN where projection failed
  """
  in_w, in_h = table.in_width, table.in_height
  src = _snap_to_grid(src)

  # Bounds are checked on the stored float32 value so floor() stays inside the image
  with np.errstate(invalid='ignore', over='ignore'):
    sx = src[:, 0].astype(np.float32)
    sy = src[:, 1].astype(np.float32)
    valid = (np.isfinite(sx) & np.isfinite(sy) &
             (sx >= 0) & (sy >= 0) & (sx < in_w) & (sy < in_h))

  if not np.any(valid):
    return

  xs = sx[valid]
  ys = sy[valid]
  index_dtype = table.fast_index.dtype
  xi = np.floor(xs).astype(index_dtype)
  yi = np.floor(ys).astype(index_dtype)

  # Fractional parts
  dx = xs - xi.astype(np.float32)
  dy = ys - yi.astype(np.float32)

  # Right and bottom neighbours are clamped on the last column/row
  x1 = np.minimum(xi + 1, in_w - 1)
  y1 = np.minimum(yi + 1, in_h - 1)

  table.src_x[start:end][valid] = xs
  table.src_y[start:end][valid] = ys
  table.fast_index[start:end][valid] = xi + in_w * yi

  table.neighbor_idx[start:end][valid] = np.stack([
    yi * in_w + xi,
    yi * in_w + x1,
    y1 * in_w + xi,
    y1 * in_w + x1
  ], axis=1)

  table.neighbor_weight[start:end][valid] = np.stack([
    (1 - dx) * (1 - dy),
    dx * (1 - dy),
    (1 - dx) * dy,
    dx * dy
  ], axis=1)


def _build_vectorized(table: RemapTable, camera_in: Camera, camera_out: Camera) -> int:
  """
  Parallel vectorized construction: each worker handles a chunk of output rows.

  Returns:
  - Number of threads used
  """
  out_w = table.out_width

  def process_rows(row_start: int, row_end: int) -> None:
    u_coords, v_coords = np.meshgrid(
      np.arange(out_w, dtype=np.float64),
      np.arange(row_start, row_end, dtype=np.float64)
    )
    points = np.stack([u_coords.ravel(), v_coords.ravel()], axis=1)

    world_points = camera_out.unproject(points)
    src = camera_in.project(world_points)

    _store_source_coordinates(table, row_start * out_w, row_end * out_w, src)

  return run_row_chunks(process_rows, table.out_height, out_w)


def _build_reference(table: RemapTable, camera_in: Camera, camera_out: Camera) -> None:
  """
  Reference construction: one output pixel at a time.

  Slow, but follows the per-pixel algorithm literally. Kept for debugging.
  """
  in_w, in_h = table.in_width, table.in_height
  index_dtype = table.fast_index.dtype

  for y in range(table.out_height):
    for x in range(table.out_width):
      i = y * table.out_width + x

      world_point = camera_out.unproject((x, y))
      src = _snap_to_grid(camera_in.project(world_point)[0])

      with np.errstate(invalid='ignore', over='ignore'):
        src_x = np.float32(src[0])
        src_y = np.float32(src[1])
      if not (np.isfinite(src_x) and np.isfinite(src_y)):
        continue
      if src_x < 0 or src_y < 0 or src_x >= in_w or src_y >= in_h:
        continue

      table.src_x[i] = src_x
      table.src_y[i] = src_y

      xi = int(src_x)
      yi = int(src_y)
      table.fast_index[i] = xi + in_w * yi

      dx = src_x - np.float32(xi)
      dy = src_y - np.float32(yi)
      x1 = min(xi + 1, in_w - 1)
      y1 = min(yi + 1, in_h - 1)

      table.neighbor_idx[i] = np.array(
        [yi * in_w + xi, yi * in_w + x1, y1 * in_w + xi, y1 * in_w + x1], dtype=index_dtype)
      table.neighbor_weight[i] = np.array(
        [(1 - dx) * (1 - dy), dx * (1 - dy), (1 - dx) * dy, dx * dy], dtype=np.float32)


def build_remap_table(camera_in: Optional[Camera], camera_out: Optional[Camera],
                      use_vectorized: bool = True) -> Tuple[Optional[RemapTable], bool]:
  """
  Build the table that maps every output pixel to its source in the input image.

  For each output pixel (x, y) the source is camera_in.project(camera_out.unproject((x, y))).

  Parameters:
  - camera_in: camera that captured the input images
  - camera_out: camera whose image should be produced
  - use_vectorized: if True, use parallel vectorized construction; if False, use the
    per-pixel reference implementation

  Returns:
  - (table, True) on success, (None, False) if either camera is missing or invalid
  """
  if camera_in is None or camera_out is None:
    return None, False
  if not (camera_in.is_valid() and camera_out.is_valid()):
    return None, False

  print("Undistorter:")
  print(f"    Camera IN : {camera_in.info()}")
  print(f"    Camera OUT: {camera_out.info()}")
  print()

  start_time = time.time()

  table = RemapTable.allocate(camera_in.width, camera_in.height,
                              camera_out.width, camera_out.height)

  if use_vectorized:
    num_threads = _build_vectorized(table, camera_in, camera_out)
    label = f"Parallel vectorized remap table ({num_threads} threads)"
  else:
    _build_reference(table, camera_in, camera_out)
    label = "Reference remap table"

  build_time = time.time() - start_time
  print(f"\033[33m{label} generation time: {build_time:.4f} seconds\033[0m")

  return table.freeze(), True
