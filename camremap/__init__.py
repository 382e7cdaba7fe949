"""
Camera Image Remapping Core Modules

This package converts images between camera models:
- Camera parameter handling and validation
- Camera models (pinhole, OpenCV, fisheye, spherical)
- Remap table construction for a camera pair
- Fast (nearest) and accurate (bilinear) resampling
- Undistorter facade and remap table caching
"""

from .camera_params import CameraParams, parse_camera_params, camera_params_from_dict
from .camera_models import (Camera, PinholeCamera, OpenCVCamera, FisheyeCamera,
                            SphericalCamera, create_camera)
from .remap_table import RemapTable, build_remap_table
from .resampler import apply_fast, apply_accurate, apply_remap_table_opencv
from .cache_manager import CacheManager, remap_cache_key
from .undistorter import Undistorter, UndistorterState

__all__ = [
  'CameraParams',
  'parse_camera_params',
  'camera_params_from_dict',
  'Camera',
  'PinholeCamera',
  'OpenCVCamera',
  'FisheyeCamera',
  'SphericalCamera',
  'create_camera',
  'RemapTable',
  'build_remap_table',
  'apply_fast',
  'apply_accurate',
  'apply_remap_table_opencv',
  'CacheManager',
  'remap_cache_key',
  'Undistorter',
  'UndistorterState'
]
