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

import numpy as np
from typing import Optional
from .camera_params import CameraParams

# Iterations used when inverting the distortion polynomials
UNDISTORT_ITERATIONS = 20


def _as_points(points, dims: int) -> np.ndarray:
  """Reshape a single point or an array of points to (N, dims) float64."""
  return np.asarray(points, dtype=np.float64).reshape(-1, dims)


class Camera:
  """
  Base camera model.

  A camera converts between pixel coordinates and 3D rays in the camera frame
  (x right, y down, z forward). Both directions are vectorized:
  - unproject: (N, 2) pixel coordinates -> (N, 3) rays
  - project: (N, 3) points -> (N, 2) pixel coordinates, NaN where the point
    cannot be imaged by this camera
  """

  model_name = 'Camera'

  def __init__(self, params: Optional[CameraParams] = None):
    self.params = params

  @property
  def width(self) -> int:
    return int(self.params.width) if self.params is not None and self.params.width else 0

  @property
  def height(self) -> int:
    return int(self.params.height) if self.params is not None and self.params.height else 0

  def is_valid(self) -> bool:
    """Return True if the parameters describe a usable camera of this model."""
    if self.params is None:
      return False
    try:
      self.params.validate()
    except (ValueError, TypeError):
      # TypeError: non-numeric sizes or intrinsics, e.g. width='640'
      return False
    return True

  def project(self, points3d) -> np.ndarray:
    raise NotImplementedError(f"{type(self).__name__} does not implement project()")

  def unproject(self, points2d) -> np.ndarray:
    raise NotImplementedError(f"{type(self).__name__} does not implement unproject()")

  def _info_values(self):
    p = self.params
    return [p.fx, p.fy, p.cx, p.cy] + list(p.distortion)

  def info(self) -> str:
    """One-line description: model name, size and parameters."""
    if self.params is None:
      return f"{self.model_name}:[invalid]"
    values = ",".join(repr(float(v)) for v in self._info_values())
    if values:
      return f"{self.model_name}:[{self.width},{self.height},{values}]"
    return f"{self.model_name}:[{self.width},{self.height}]"

  def __str__(self):
    return self.info()

  def __repr__(self):
    return f"{type(self).__name__}({self.params!r})"


class PinholeCamera(Camera):
  """Ideal pinhole camera without distortion."""

  model_name = 'PinHole'

  def project(self, points3d) -> np.ndarray:
    p = self.params
    pts = _as_points(points3d, 3)
    z = pts[:, 2]
    in_front = z > 0
    safe_z = np.where(in_front, z, 1.0)

    uv = np.empty((pts.shape[0], 2), dtype=np.float64)
    uv[:, 0] = p.fx * (pts[:, 0] / safe_z) + p.cx
    uv[:, 1] = p.fy * (pts[:, 1] / safe_z) + p.cy
    uv[~in_front] = np.nan
    return uv

  def unproject(self, points2d) -> np.ndarray:
    p = self.params
    uv = _as_points(points2d, 2)
    rays = np.ones((uv.shape[0], 3), dtype=np.float64)
    rays[:, 0] = (uv[:, 0] - p.cx) / p.fx
    rays[:, 1] = (uv[:, 1] - p.cy) / p.fy
    return rays


class OpenCVCamera(PinholeCamera):
  """
  OpenCV radial-tangential model with coefficients (k1, k2, p1, p2, k3).

  Projection matches cv2.projectPoints. Unprojection inverts the distortion with
  the same fixed-point iteration cv2.undistortPoints uses.
  """

  model_name = 'OpenCV'

  def _distort(self, x: np.ndarray, y: np.ndarray):
    k1, k2, p1, p2, k3 = self.params.distortion
    r2 = x * x + y * y
    radial = 1 + r2 * (k1 + r2 * (k2 + r2 * k3))
    xd = x * radial + 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
    yd = y * radial + p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
    return xd, yd

  def project(self, points3d) -> np.ndarray:
    p = self.params
    pts = _as_points(points3d, 3)
    z = pts[:, 2]
    in_front = z > 0
    safe_z = np.where(in_front, z, 1.0)

    xd, yd = self._distort(pts[:, 0] / safe_z, pts[:, 1] / safe_z)
    uv = np.stack([p.fx * xd + p.cx, p.fy * yd + p.cy], axis=1)
    uv[~in_front] = np.nan
    return uv

  def unproject(self, points2d) -> np.ndarray:
    p = self.params
    k1, k2, p1, p2, k3 = p.distortion
    uv = _as_points(points2d, 2)
    xd = (uv[:, 0] - p.cx) / p.fx
    yd = (uv[:, 1] - p.cy) / p.fy

    x = xd.copy()
    y = yd.copy()
    for _ in range(UNDISTORT_ITERATIONS):
      r2 = x * x + y * y
      inv_radial = 1.0 / (1 + r2 * (k1 + r2 * (k2 + r2 * k3)))
      delta_x = 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
      delta_y = p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
      x = (xd - delta_x) * inv_radial
      y = (yd - delta_y) * inv_radial

    return np.stack([x, y, np.ones_like(x)], axis=1)


class FisheyeCamera(Camera):
  """
  OpenCV fisheye (equidistant, Kannala-Brandt) model with coefficients (k1, k2, k3, k4).

  theta_d = theta * (1 + k1*theta^2 + k2*theta^4 + k3*theta^6 + k4*theta^8)

  The angle theta is measured from the optical axis, so rays with z <= 0 are
  still imaged as long as theta < pi.
  """

  model_name = 'Fisheye'

  def _theta_d(self, theta: np.ndarray) -> np.ndarray:
    k1, k2, k3, k4 = self.params.distortion
    theta2 = theta * theta
    # Horner's method
    return theta * (1 + theta2 * (k1 + theta2 * (k2 + theta2 * (k3 + theta2 * k4))))

  def project(self, points3d) -> np.ndarray:
    p = self.params
    pts = _as_points(points3d, 3)
    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]

    r = np.hypot(x, y)
    theta = np.arctan2(r, z)
    theta_d = self._theta_d(theta)

    on_axis = r <= 0
    safe_r = np.where(on_axis, 1.0, r)
    scale = np.where(on_axis, 0.0, theta_d / safe_r)

    uv = np.stack([p.fx * scale * x + p.cx, p.fy * scale * y + p.cy], axis=1)
    # Straight behind the camera, or the zero vector
    uv[(theta >= np.pi) | (on_axis & (z <= 0))] = np.nan
    return uv

  def unproject(self, points2d) -> np.ndarray:
    p = self.params
    k1, k2, k3, k4 = p.distortion
    uv = _as_points(points2d, 2)
    xd = (uv[:, 0] - p.cx) / p.fx
    yd = (uv[:, 1] - p.cy) / p.fy
    theta_d = np.hypot(xd, yd)

    # Newton iterations on theta_d(theta) - theta_d = 0
    theta = theta_d.copy()
    for _ in range(UNDISTORT_ITERATIONS):
      theta2 = theta * theta
      f = self._theta_d(theta) - theta_d
      df = 1 + theta2 * (3 * k1 + theta2 * (5 * k2 + theta2 * (7 * k3 + theta2 * 9 * k4)))
      theta = theta - f / np.where(df == 0, 1.0, df)

    on_axis = theta_d <= 0
    safe_theta_d = np.where(on_axis, 1.0, theta_d)
    sin_theta = np.sin(theta)
    rays = np.empty((uv.shape[0], 3), dtype=np.float64)
    rays[:, 0] = np.where(on_axis, 0.0, sin_theta * xd / safe_theta_d)
    rays[:, 1] = np.where(on_axis, 0.0, sin_theta * yd / safe_theta_d)
    rays[:, 2] = np.where(on_axis, 1.0, np.cos(theta))
    return rays


class SphericalCamera(Camera):
  """
  Equirectangular panorama covering 360 x 180 degrees.

  Column u maps to longitude (-pi at the left edge, 0 straight ahead along +z) and
  row v maps to latitude (-pi/2 at the top, looking along -y).
  """

  model_name = 'Spherical'

  def _info_values(self):
    return []

  def project(self, points3d) -> np.ndarray:
    pts = _as_points(points3d, 3)
    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]

    lon = np.arctan2(x, z)
    lat = np.arctan2(y, np.hypot(x, z))

    uv = np.empty((pts.shape[0], 2), dtype=np.float64)
    uv[:, 0] = (lon / (2 * np.pi) + 0.5) * self.width - 0.5
    uv[:, 1] = (lat / np.pi + 0.5) * self.height - 0.5
    uv[~np.any(pts != 0, axis=1)] = np.nan
    return uv

  def unproject(self, points2d) -> np.ndarray:
    uv = _as_points(points2d, 2)
    lon = ((uv[:, 0] + 0.5) / self.width - 0.5) * 2 * np.pi
    lat = ((uv[:, 1] + 0.5) / self.height - 0.5) * np.pi

    cos_lat = np.cos(lat)
    return np.stack([cos_lat * np.sin(lon), np.sin(lat), cos_lat * np.cos(lon)], axis=1)


CAMERA_CLASSES = {
  'PINHOLE': PinholeCamera,
  'OPENCV': OpenCVCamera,
  'OPENCV_FISHEYE': FisheyeCamera,
  'SPHERICAL': SphericalCamera,
}


def create_camera(params: Optional[CameraParams]) -> Camera:
  """
  Create the camera model matching params.model.

  Parameters:
  - params: CameraParams object, or None for an invalid camera

  Returns:
  - Camera instance; Camera(None) reports is_valid() == False
  """
  if params is None:
    return Camera(None)
  return CAMERA_CLASSES[params.model](params)
