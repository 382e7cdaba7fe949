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

import threading
import time
from collections import OrderedDict
from typing import Dict, Tuple, Optional, Any
from .camera_models import Camera
from .remap_table import RemapTable

BYTES_PER_MB = 1024 * 1024


def remap_cache_key(camera_in: Camera, camera_out: Camera) -> str:
  """Cache key identifying the remap table of a camera pair."""
  return f"remap_{camera_in.info()}->{camera_out.info()}"


class CacheManager:
  """
  Thread-safe LRU cache manager for remap tables.

  Several undistorters can share one manager so that identical camera pairs
  are only built once. Tables are read-only, so they are stored and returned
  without copying.
  """

  def __init__(self, max_memory_mb: Optional[float] = None):
    """
    Initialize the cache manager with LRU eviction strategy.

    Parameters:
    - max_memory_mb: Optional maximum memory usage in MB. If None, no limit is enforced.
    """
    # Insertion/access order is the LRU order
    self._cache: "OrderedDict[str, Tuple[RemapTable, float]]" = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._lock = threading.RLock()
    self._access_count = 0
    self._hit_count = 0
    self._eviction_count = 0

  @property
  def max_memory_mb(self) -> Optional[float]:
    return self._max_memory_mb

  def get(self, cache_key: str) -> Optional[RemapTable]:
    """
    Retrieve a cached table with LRU update.

    Parameters:
    - cache_key: unique identifier for the cached table

    Returns:
    - RemapTable if found, None otherwise
    """
    with self._lock:
      self._access_count += 1

      if cache_key in self._cache:
        table, _ = self._cache[cache_key]
        self._cache[cache_key] = (table, time.time())
        self._cache.move_to_end(cache_key)
        self._hit_count += 1
        return table

      return None

  def put(self, cache_key: str, table: RemapTable) -> bool:
    """
    Store a table in cache with LRU eviction when needed.

    Parameters:
    - cache_key: unique identifier for the table
    - table: built remap table

    Returns:
    - True if the table was stored, False if it does not fit in the memory limit
    """
    with self._lock:
      new_memory_mb = table.nbytes / BYTES_PER_MB
      current_time = time.time()

      if cache_key in self._cache:
        self._cache[cache_key] = (table, current_time)
        self._cache.move_to_end(cache_key)
        return True

      if self._max_memory_mb is not None:
        current_memory = self._calculate_total_memory_mb()

        # Evict least recently used entries until we have enough space
        while (current_memory + new_memory_mb > self._max_memory_mb and
               len(self._cache) > 0):
          lru_key, (lru_table, _) = self._cache.popitem(last=False)
          freed_memory = lru_table.nbytes / BYTES_PER_MB
          current_memory -= freed_memory
          self._eviction_count += 1

          print(f"LRU evicted: {lru_key} (freed {freed_memory:.1f} MB)")

        if current_memory + new_memory_mb > self._max_memory_mb:
          print(f"Warning: Cannot add cache entry - exceeds memory limit even after eviction "
                f"({self._max_memory_mb:.1f} MB)")
          return False

      self._cache[cache_key] = (table, current_time)
      return True

  def get_or_build(self, camera_in: Camera, camera_out: Camera, build) -> Tuple[Optional[RemapTable], bool]:
    """
    Return the cached table for a camera pair, building and storing it on a miss.

    Parameters:
    - camera_in, camera_out: camera pair
    - build: callable (camera_in, camera_out) -> (table, valid)

    Returns:
    - (table, valid) as returned by build
    """
    cache_key = remap_cache_key(camera_in, camera_out)
    table = self.get(cache_key)
    if table is not None:
      print(f"Using cached remap table: {cache_key}")
      return table, True

    table, valid = build(camera_in, camera_out)
    if valid:
      self.put(cache_key, table)
    return table, valid

  def remove(self, cache_key: str) -> bool:
    """
    Remove a specific cache entry.

    Returns:
    - True if the entry was found and removed, False otherwise
    """
    with self._lock:
      if cache_key in self._cache:
        del self._cache[cache_key]
        return True
      return False

  def clear(self) -> None:
    """Clear all cached tables."""
    with self._lock:
      self._cache.clear()

  def contains(self, cache_key: str) -> bool:
    with self._lock:
      return cache_key in self._cache

  def __len__(self):
    with self._lock:
      return len(self._cache)

  def get_info(self) -> Dict[str, Any]:
    """
    Get cache statistics including LRU metrics.

    Returns:
    - Dictionary with cache statistics including memory usage, entry counts, and LRU stats
    """
    with self._lock:
      total_memory_bytes = 0
      oldest_timestamp = float('inf')
      newest_timestamp = 0

      for table, timestamp in self._cache.values():
        total_memory_bytes += table.nbytes
        oldest_timestamp = min(oldest_timestamp, timestamp)
        newest_timestamp = max(newest_timestamp, timestamp)

      cache_age_span = newest_timestamp - oldest_timestamp if len(self._cache) > 1 else 0

      return {
        'total_cached_tables': len(self._cache),
        'memory_usage_bytes': total_memory_bytes,
        'memory_usage_mb': total_memory_bytes / BYTES_PER_MB,
        'max_memory_mb': self._max_memory_mb,
        'memory_limit_enabled': self._max_memory_mb is not None,
        'total_accesses': self._access_count,
        'total_hits': self._hit_count,
        'total_evictions': self._eviction_count,
        'cache_age_span_seconds': cache_age_span
      }

  def print_status(self) -> None:
    """Print current cache status in a human-readable format."""
    info = self.get_info()
    print(f"Cache status: {info['total_cached_tables']} remap tables, "
          f"{info['memory_usage_mb']:.1f} MB, "
          f"{info['total_hits']}/{info['total_accesses']} hits")

    if info['memory_limit_enabled']:
      usage_percent = (info['memory_usage_mb'] / info['max_memory_mb']) * 100
      print(f"Cache memory usage: {usage_percent:.1f}% of {info['max_memory_mb']:.1f} MB limit")

  def _calculate_total_memory_mb(self) -> float:
    total_bytes = 0
    for table, _ in self._cache.values():
      total_bytes += table.nbytes
    return total_bytes / BYTES_PER_MB

  def get_cache_keys(self, prefix: Optional[str] = None) -> list:
    """
    Get all cache keys, optionally filtered by prefix.

    Returns:
    - List of cache keys
    """
    with self._lock:
      if prefix is None:
        return list(self._cache.keys())
      return [key for key in self._cache.keys() if key.startswith(prefix)]

  def get_lru_order(self) -> list:
    """
    Get cache keys in LRU order (least recently used first).
    """
    with self._lock:
      return list(self._cache.keys())
