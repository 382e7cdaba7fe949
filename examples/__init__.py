"""
Camera Remapping Examples and Tests

This package contains scripts exercising the camera remapping core:
- Test scripts for camera models, remap tables, resamplers, the undistorter and the cache
- Benchmark of table construction and conversion speed
"""
