#!/usr/bin/env python3
"""
Test script for camera parameters and camera models.

This script verifies:
1. Pinhole projection and unprojection
2. OpenCV and fisheye projections against OpenCV's own implementation
3. Distortion inversion round trips
4. Spherical panorama mapping
5. YAML camera parameter parsing and validation
"""

import sys
import os
import tempfile
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import cv2
import numpy as np
import yaml
from camremap.camera_params import CameraParams, parse_camera_params, camera_params_from_dict
from camremap.camera_models import (Camera, PinholeCamera, OpenCVCamera, FisheyeCamera,
                                    SphericalCamera, create_camera)


def _grid(width, height, step):
  u, v = np.meshgrid(np.arange(0, width, step, dtype=np.float64),
                     np.arange(0, height, step, dtype=np.float64))
  return np.stack([u.ravel(), v.ravel()], axis=1)


def test_pinhole_round_trip():
  """Unprojecting then projecting a pixel returns the same pixel."""
  print("=" * 60)
  print("TEST 1: Pinhole Round Trip")
  print("=" * 60)

  camera = PinholeCamera(CameraParams(width=640, height=480, fx=500, fy=510, cx=320, cy=240))
  pixels = _grid(640, 480, 37)

  rays = camera.unproject(pixels)
  assert rays.shape == (len(pixels), 3)
  assert np.all(rays[:, 2] == 1.0)

  reprojected = camera.project(rays)
  assert np.allclose(reprojected, pixels, atol=1e-9)

  # Single points are accepted too
  assert camera.project((0.0, 0.0, 2.0)).shape == (1, 2)
  print(f"✓ {len(pixels)} pixels reprojected exactly")


def test_pinhole_behind_camera_is_nan():
  print("\n" + "=" * 60)
  print("TEST 2: Points Behind A Pinhole Camera")
  print("=" * 60)

  camera = PinholeCamera(CameraParams(width=64, height=48, fx=50, fy=50, cx=32, cy=24))
  uv = camera.project(np.array([[0.0, 0.0, 1.0], [0.1, 0.2, -1.0], [0.0, 0.0, 0.0]]))

  assert np.all(np.isfinite(uv[0]))
  assert np.all(np.isnan(uv[1]))
  assert np.all(np.isnan(uv[2]))
  print("✓ Points with z <= 0 project to NaN")


def test_opencv_projection_matches_cv2():
  print("\n" + "=" * 60)
  print("TEST 3: OpenCV Model vs cv2.projectPoints")
  print("=" * 60)

  params = CameraParams(model='OPENCV', width=640, height=480, fx=520, fy=515, cx=321, cy=239,
                        distortion=[-0.28, 0.07, 0.0002, -0.0001, 0.01])
  camera = OpenCVCamera(params)

  rng = np.random.default_rng(0)
  points = np.column_stack([rng.uniform(-0.5, 0.5, 200), rng.uniform(-0.4, 0.4, 200),
                            rng.uniform(1.0, 3.0, 200)])

  expected, _ = cv2.projectPoints(points, np.zeros(3), np.zeros(3),
                                  params.get_camera_matrix(), params.get_distortion_coefficients())
  assert np.allclose(camera.project(points), expected.reshape(-1, 2), atol=1e-6)
  print("✓ Projection agrees with OpenCV")


def test_opencv_unproject_inverts_distortion():
  print("\n" + "=" * 60)
  print("TEST 4: OpenCV Model Round Trip")
  print("=" * 60)

  camera = OpenCVCamera(CameraParams(model='OPENCV', width=640, height=480,
                                     fx=520, fy=520, cx=320, cy=240,
                                     distortion=[-0.1, 0.01, 0.0005, -0.0005, 0.0]))
  pixels = _grid(640, 480, 40)

  reprojected = camera.project(camera.unproject(pixels))
  assert np.allclose(reprojected, pixels, atol=1e-3)
  print(f"✓ Max reprojection error: {np.abs(reprojected - pixels).max():.2e} px")


def test_fisheye_projection_matches_cv2():
  print("\n" + "=" * 60)
  print("TEST 5: Fisheye Model vs cv2.fisheye.projectPoints")
  print("=" * 60)

  params = CameraParams(model='OPENCV_FISHEYE', width=1920, height=1080,
                        fx=800, fy=800, cx=960, cy=540, distortion=[0.1, 0.05, 0.01, 0.005])
  camera = FisheyeCamera(params)

  rng = np.random.default_rng(1)
  points = np.column_stack([rng.uniform(-1.0, 1.0, 200), rng.uniform(-1.0, 1.0, 200),
                            rng.uniform(0.5, 2.0, 200)])

  expected, _ = cv2.fisheye.projectPoints(points.reshape(1, -1, 3), np.zeros((3, 1)), np.zeros((3, 1)),
                                          params.get_camera_matrix(),
                                          params.get_distortion_coefficients().reshape(4, 1))
  assert np.allclose(camera.project(points), expected.reshape(-1, 2), atol=1e-6)
  print("✓ Projection agrees with OpenCV fisheye model")


def test_fisheye_round_trip_beyond_90_degrees():
  print("\n" + "=" * 60)
  print("TEST 6: Fisheye Round Trip Including Rays Behind The Image Plane")
  print("=" * 60)

  camera = FisheyeCamera(CameraParams(model='OPENCV_FISHEYE', width=1920, height=1080,
                                      fx=400, fy=400, cx=960, cy=540,
                                      distortion=[0.1, 0.05, 0.01, 0.005]))

  theta = np.linspace(0.0, np.radians(100), 25)
  phi = np.linspace(-np.pi, np.pi, 25)
  rays = np.column_stack([np.sin(theta) * np.cos(phi), np.sin(theta) * np.sin(phi), np.cos(theta)])

  recovered = camera.unproject(camera.project(rays))
  assert np.allclose(recovered, rays, atol=1e-6)
  assert np.allclose(camera.unproject((960, 540)), [[0.0, 0.0, 1.0]])
  print("✓ Rays up to 100° off-axis recovered")


def test_spherical_camera():
  print("\n" + "=" * 60)
  print("TEST 7: Spherical Panorama")
  print("=" * 60)

  camera = SphericalCamera(CameraParams(model='SPHERICAL', width=360, height=180))
  assert camera.is_valid()

  # Centre of the panorama looks straight ahead
  forward = camera.unproject((179.5, 89.5))[0]
  assert np.allclose(forward, [0.0, 0.0, 1.0], atol=1e-12)

  pixels = _grid(360, 180, 13) + 0.25
  assert np.allclose(camera.project(camera.unproject(pixels)), pixels, atol=1e-9)
  assert camera.info() == "Spherical:[360,180]"
  print("✓ Panorama pixels round trip")


def test_invalid_cameras():
  print("\n" + "=" * 60)
  print("TEST 8: Invalid Cameras")
  print("=" * 60)

  assert not Camera().is_valid()
  assert not create_camera(None).is_valid()
  assert create_camera(None).width == 0
  assert not PinholeCamera(CameraParams(width=0, height=4, fx=1, fy=1, cx=0, cy=0)).is_valid()
  assert not PinholeCamera(CameraParams(width=4, height=4, fx=-1, fy=1, cx=2, cy=2)).is_valid()
  assert not PinholeCamera(CameraParams(width=4, height=4, fx=1, fy=1, cx=9, cy=2)).is_valid()
  assert not FisheyeCamera(CameraParams(model='OPENCV_FISHEYE', width=4, height=4, fx=1, fy=1,
                                        cx=2, cy=2, distortion=[0.1, 0.2])).is_valid()
  assert isinstance(create_camera(CameraParams(model='plumb_bob', width=4, height=4,
                                               fx=1, fy=1, cx=2, cy=2)), OpenCVCamera)

  try:
    CameraParams(model='kannala_brandt_8')
  except ValueError:
    pass
  else:
    raise AssertionError("Unknown model name should raise ValueError")
  print("✓ Invalid parameters are rejected")


def test_camera_info_and_to_pinhole():
  print("\n" + "=" * 60)
  print("TEST 9: Camera Info And Pinhole Conversion")
  print("=" * 60)

  params = CameraParams(camera_id='cam0', model='OPENCV_FISHEYE', width=4, height=4,
                        fx=4, fy=4, cx=2, cy=2, distortion=[0.1, 0.0, 0.0, 0.0])
  assert create_camera(params).info() == "Fisheye:[4,4,4.0,4.0,2.0,2.0,0.1,0.0,0.0,0.0]"

  pinhole = params.to_pinhole()
  assert pinhole.model == 'PINHOLE'
  assert pinhole.distortion == []
  assert pinhole.get_camera_matrix().tolist() == params.get_camera_matrix().tolist()
  assert create_camera(pinhole).info() == "PinHole:[4,4,4.0,4.0,2.0,2.0]"
  print("✓ Info strings describe model, size and parameters")


def _write_yaml(directory, name, data):
  path = os.path.join(directory, name)
  with open(path, 'w') as f:
    yaml.safe_dump(data, f)
  return path


def test_parse_camera_params_yaml():
  print("\n" + "=" * 60)
  print("TEST 10: YAML Camera Parameters")
  print("=" * 60)

  fisheye_data = {
    'camera_name': 'front',
    'image_width': 1920,
    'image_height': 1080,
    'distortion_model': 'fisheye',
    'camera_matrix': {'rows': 3, 'cols': 3,
                      'data': [800.0, 0.0, 960.0, 0.0, 810.0, 540.0, 0.0, 0.0, 1.0]},
    'distortion_coefficients': {'rows': 1, 'cols': 4, 'data': [0.1, 0.05, 0.01, 0.005]},
  }

  with tempfile.TemporaryDirectory() as tmp:
    params = parse_camera_params(_write_yaml(tmp, 'fisheye.yaml', fisheye_data))
    assert params.model == 'OPENCV_FISHEYE'
    assert params.camera_id == 'front'
    assert (params.fx, params.fy, params.cx, params.cy) == (800.0, 810.0, 960.0, 540.0)
    assert params.distortion == [0.1, 0.05, 0.01, 0.005]

    pinhole = parse_camera_params(_write_yaml(tmp, 'pinhole.yaml', {
      'image_width': 640, 'image_height': 480, 'distortion_model': 'none',
      'camera_matrix': {'data': [500, 0, 320, 0, 500, 240, 0, 0, 1]},
    }))
    assert pinhole.model == 'PINHOLE'

    bad_coefficients = dict(fisheye_data, distortion_coefficients={'data': [0.1, 0.2]})
    for name, data in [('bad_coeffs.yaml', bad_coefficients),
                       ('missing.yaml', {'image_width': 10}),
                       ('bad_model.yaml', dict(fisheye_data, distortion_model='mystery'))]:
      try:
        parse_camera_params(_write_yaml(tmp, name, data))
      except ValueError:
        pass
      else:
        raise AssertionError(f"{name} should be rejected")

    try:
      parse_camera_params(os.path.join(tmp, 'does_not_exist.yaml'))
    except FileNotFoundError:
      pass
    else:
      raise AssertionError("Missing file should raise FileNotFoundError")

  spherical = camera_params_from_dict({'image_width': 720, 'image_height': 360,
                                       'distortion_model': 'equirectangular'})
  assert spherical.model == 'SPHERICAL'
  print("✓ YAML parsing and validation work correctly")


def test_config_directory_examples():
  """The sample configurations shipped in config/ are valid."""
  print("\n" + "=" * 60)
  print("TEST 11: Sample Configurations")
  print("=" * 60)

  config_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'config')
  for name in ('fisheye_camera.yaml', 'pinhole_camera.yaml', 'opencv_camera.yaml'):
    camera = create_camera(parse_camera_params(os.path.join(config_dir, name)))
    assert camera.is_valid()
    print(f"✓ {name}: {camera.info()}")


def main():
  """Run all camera model tests."""
  print("CAMERA MODEL TESTS")
  print("=" * 60)

  try:
    test_pinhole_round_trip()
    test_pinhole_behind_camera_is_nan()
    test_opencv_projection_matches_cv2()
    test_opencv_unproject_inverts_distortion()
    test_fisheye_projection_matches_cv2()
    test_fisheye_round_trip_beyond_90_degrees()
    test_spherical_camera()
    test_invalid_cameras()
    test_camera_info_and_to_pinhole()
    test_parse_camera_params_yaml()
    test_config_directory_examples()

    print("\n" + "=" * 60)
    print("✅ ALL CAMERA MODEL TESTS PASSED!")
    print("=" * 60)

  except Exception as e:
    print(f"\n❌ TEST FAILED: {e}")
    import traceback
    traceback.print_exc()
    return 1

  return 0


if __name__ == "__main__":
  exit(main())
