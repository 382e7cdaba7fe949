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

import multiprocessing
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Tuple

MAX_THREADS = 8  # Cap threads to avoid overhead
MIN_CHUNK_ROWS = 32  # Minimum rows per chunk for cache efficiency
MIN_PARALLEL_SIZE = 128  # Below this many rows/columns work stays on the calling thread


def plan_row_chunks(height: int, width: int) -> Tuple[int, List[Tuple[int, int]]]:
  """
  Split image rows into chunks for parallel processing.

  Parameters:
  - height, width: dimensions of the image being generated

  Returns:
  - Tuple of (num_threads, [(row_start, row_end), ...]); num_threads is 1 for small images
  """
  if height < MIN_PARALLEL_SIZE or width < MIN_PARALLEL_SIZE:
    return 1, [(0, height)]

  num_cores = min(multiprocessing.cpu_count(), MAX_THREADS)
  chunk_size = max(MIN_CHUNK_ROWS, height // (num_cores * 2))  # 2x cores for better load balancing

  row_ranges = []
  for row_start in range(0, height, chunk_size):
    row_ranges.append((row_start, min(row_start + chunk_size, height)))
  return num_cores, row_ranges


def run_row_chunks(process_chunk: Callable[[int, int], None], height: int, width: int) -> int:
  """
  Run process_chunk(row_start, row_end) over all rows of an image.

  Each call must write to a disjoint slice of a preallocated output. Exceptions
  raised by a worker propagate to the caller.

  Returns:
  - Number of threads used
  """
  num_threads, row_ranges = plan_row_chunks(height, width)

  if num_threads == 1:
    for row_start, row_end in row_ranges:
      process_chunk(row_start, row_end)
    return 1

  with ThreadPoolExecutor(max_workers=num_threads) as executor:
    futures = [executor.submit(process_chunk, row_start, row_end)
               for row_start, row_end in row_ranges]
    for future in futures:
      future.result()

  return num_threads
