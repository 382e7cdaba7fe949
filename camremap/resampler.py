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

import sys
import cv2
import numpy as np
from typing import Optional, Tuple
from .parallel import run_row_chunks
from .remap_table import RemapTable

SIZE_MISMATCH_WARNING = "input image size differs from expected input size! Not undistorting."


def _check_input(table: Optional[RemapTable], image: np.ndarray) -> bool:
  """
  Check that image can be resampled with table.

  Returns:
  - False if there is no table or the image size differs from the table's input size
  """
  if image is None:
    raise ValueError("Input image is None")

  if table is None:
    return False

  if image.ndim < 2 or image.shape[0] != table.in_height or image.shape[1] != table.in_width:
    print(SIZE_MISMATCH_WARNING, file=sys.stderr)
    return False

  return True


def _pixels(image: np.ndarray, table: RemapTable) -> np.ndarray:
  """View the image as (in_width * in_height, channels) pixel rows."""
  return image.reshape(table.in_width * table.in_height, -1)


def _output_shape(table: RemapTable, image: np.ndarray) -> Tuple[int, ...]:
  return (table.out_height, table.out_width) + image.shape[2:]


def _truncate_to(values: np.ndarray, dtype) -> np.ndarray:
  """Convert interpolated values to dtype, truncating toward zero for integer types."""
  if np.issubdtype(dtype, np.integer):
    info = np.iinfo(dtype)
    upper = np.array(info.max, dtype=values.dtype)
    # int64 max rounds up to 2**63 in float64, which would wrap on conversion
    if int(upper) > info.max:
      upper = np.nextafter(upper, 0)
    return np.clip(np.trunc(values), info.min, upper).astype(dtype)
  return values.astype(dtype)


def apply_fast(table: Optional[RemapTable], image: np.ndarray) -> Tuple[np.ndarray, bool]:
  """
  Resample image with nearest-index lookup, no interpolation.

  Parameters:
  - table: remap table built for the camera that captured image
  - image: input image as numpy array (H x W or H x W x C, any dtype)

  Returns:
  - (output, True) with output sized to the table's output camera; pixels without a
    valid source are zero
  - (copy of image, False) if there is no table or the image size does not match
  """
  if not _check_input(table, image):
    return image.copy(), False

  src = _pixels(image, table)
  out = np.zeros((table.size, src.shape[1]), dtype=image.dtype)

  valid = table.fast_index >= 0
  out[valid] = src[table.fast_index[valid]]

  return out.reshape(_output_shape(table, image)), True


def apply_accurate(table: Optional[RemapTable], image: np.ndarray) -> Tuple[np.ndarray, bool]:
  """
  Resample image with bilinear interpolation over the four neighbours of each source point.

  Each channel is the weighted sum of the four neighbour values, accumulated in
  float32 (float64 for 32/64-bit inputs) and truncated toward zero for integer images.

  Parameters:
  - table: remap table built for the camera that captured image
  - image: input image as numpy array (H x W or H x W x C, any dtype)

  Returns:
  - (output, ok) as for apply_fast
  """
  if not _check_input(table, image):
    return image.copy(), False

  src = _pixels(image, table)
  acc_dtype = np.result_type(image.dtype, np.float32)
  out = np.zeros((table.size, src.shape[1]), dtype=image.dtype)
  out_w = table.out_width

  def process_rows(row_start: int, row_end: int) -> None:
    start, end = row_start * out_w, row_end * out_w
    valid = table.src_x[start:end] >= 0
    if not np.any(valid):
      return

    idx = table.neighbor_idx[start:end][valid]
    weights = table.neighbor_weight[start:end][valid].astype(acc_dtype)

    values = (src[idx[:, 0]].astype(acc_dtype) * weights[:, 0:1] +
              src[idx[:, 1]].astype(acc_dtype) * weights[:, 1:2] +
              src[idx[:, 2]].astype(acc_dtype) * weights[:, 2:3] +
              src[idx[:, 3]].astype(acc_dtype) * weights[:, 3:4])

    out[start:end][valid] = _truncate_to(values, image.dtype)

  run_row_chunks(process_rows, table.out_height, out_w)

  return out.reshape(_output_shape(table, image)), True


def apply_remap_table_opencv(table: Optional[RemapTable], image: np.ndarray,
                             interpolation: int = cv2.INTER_LINEAR) -> Tuple[np.ndarray, bool]:
  """
  Resample image by handing the table's coordinate maps to cv2.remap.

  OpenCV rounds interpolated values and blends edge pixels with the zero border, so
  results can differ slightly from apply_accurate.

  Parameters:
  - table: remap table built for the camera that captured image
  - image: input image as numpy array
  - interpolation: OpenCV interpolation flag (e.g. cv2.INTER_LINEAR, cv2.INTER_NEAREST)

  Returns:
  - (output, ok) as for apply_fast
  """
  if not _check_input(table, image):
    return image.copy(), False

  map_x, map_y = table.to_opencv_maps()
  result = cv2.remap(image, map_x, map_y, interpolation,
                     borderMode=cv2.BORDER_CONSTANT, borderValue=0)

  # cv2.remap drops the channel axis of single-channel 3D inputs
  result = result.reshape(_output_shape(table, image))
  result[~table.valid_mask().reshape(table.out_height, table.out_width)] = 0

  return result, True
