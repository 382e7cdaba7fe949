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
import yaml

# Canonical model name -> number of distortion coefficients
DISTORTION_SIZES = {
  'PINHOLE': 0,
  'OPENCV': 5,
  'OPENCV_FISHEYE': 4,
  'SPHERICAL': 0,
}

# Accepted spellings of distortion_model in YAML files
MODEL_ALIASES = {
  'none': 'PINHOLE',
  'pinhole': 'PINHOLE',
  'plumb_bob': 'OPENCV',
  'radtan': 'OPENCV',
  'opencv': 'OPENCV',
  'fisheye': 'OPENCV_FISHEYE',
  'equidistant': 'OPENCV_FISHEYE',
  'opencv_fisheye': 'OPENCV_FISHEYE',
  'spherical': 'SPHERICAL',
  'equirectangular': 'SPHERICAL',
}


def normalize_model_name(model):
  """
  Map a distortion model spelling to its canonical name.

  Raises:
  ValueError if the model is not supported.
  """
  if model is None:
    return 'PINHOLE'
  key = str(model).strip()
  if key.upper() in DISTORTION_SIZES:
    return key.upper()
  if key.lower() in MODEL_ALIASES:
    return MODEL_ALIASES[key.lower()]
  raise ValueError(f"Unsupported camera model: {model}")


class CameraParams:
  """
  Camera parameters shared by every camera model.

  This class holds the image size, pinhole intrinsics and the distortion
  coefficients of one camera. The meaning of the coefficients depends on the model:
  - PINHOLE: none
  - OPENCV: k1, k2, p1, p2, k3 (radial-tangential)
  - OPENCV_FISHEYE: k1, k2, k3, k4 (equidistant / Kannala-Brandt)
  - SPHERICAL: none, intrinsics are ignored (full equirectangular panorama)
  """

  def __init__(self, camera_id=None, model='PINHOLE', width=None, height=None,
               fx=None, fy=None, cx=None, cy=None, distortion=None):
    """
    Initialize camera parameters.

    Parameters:
    - camera_id: unique identifier for the camera
    - model: camera model type (e.g., 'PINHOLE', 'OPENCV_FISHEYE')
    - width: image width in pixels
    - height: image height in pixels
    - fx, fy: focal lengths in pixels
    - cx, cy: principal point coordinates in pixels
    - distortion: sequence of distortion coefficients for the model
    """
    self.camera_id = camera_id
    self.model = normalize_model_name(model)
    self.width = width
    self.height = height
    self.fx = fx
    self.fy = fy
    self.cx = cx
    self.cy = cy
    if distortion is None:
      distortion = [0.0] * DISTORTION_SIZES[self.model]
    self.distortion = [float(k) for k in distortion]

  def to_dict(self):
    """
    Convert camera parameters to dictionary format.

    Returns:
    Dictionary containing all camera parameters.
    """
    return {
      'camera_id': self.camera_id,
      'model': self.model,
      'width': self.width,
      'height': self.height,
      'fx': self.fx,
      'fy': self.fy,
      'cx': self.cx,
      'cy': self.cy,
      'distortion': list(self.distortion)
    }

  def get_camera_matrix(self):
    """
    Get OpenCV camera matrix K.

    Returns:
    3x3 numpy array representing the camera intrinsic matrix.
    """
    return np.array([
      [self.fx, 0, self.cx],
      [0, self.fy, self.cy],
      [0, 0, 1]
    ], dtype=np.float64)

  def get_distortion_coefficients(self):
    """Get distortion coefficients as a float64 numpy array."""
    return np.array(self.distortion, dtype=np.float64)

  def get_image_size(self):
    """
    Get image dimensions as tuple.

    Returns:
    Tuple (width, height) of image dimensions.
    """
    return (self.width, self.height)

  def to_pinhole(self, camera_id=None):
    """
    Distortion-free pinhole camera with the same size and intrinsics.

    This is the usual target camera when rectifying a distorted image.
    """
    return CameraParams(
      camera_id=camera_id if camera_id is not None else self.camera_id,
      model='PINHOLE',
      width=self.width, height=self.height,
      fx=self.fx, fy=self.fy, cx=self.cx, cy=self.cy
    )

  def validate(self):
    """
    Validate camera parameters for reasonable ranges.

    Raises:
    ValueError if any parameter is invalid or out of reasonable range.
    """
    if self.width is None or self.height is None:
      raise ValueError("Image dimensions are not set")

    if self.width <= 0 or self.height <= 0:
      raise ValueError(f"Invalid image dimensions: {self.width}x{self.height}")

    if len(self.distortion) != DISTORTION_SIZES[self.model]:
      raise ValueError(f"{self.model} expects {DISTORTION_SIZES[self.model]} distortion "
                       f"coefficients, got {len(self.distortion)}")

    # Spherical panoramas are fully described by their size
    if self.model == 'SPHERICAL':
      return

    if None in (self.fx, self.fy, self.cx, self.cy):
      raise ValueError("Camera intrinsics are not set")

    if self.fx <= 0 or self.fy <= 0:
      raise ValueError(f"Invalid focal lengths: fx={self.fx}, fy={self.fy}")

    if not (0 <= self.cx <= self.width) or not (0 <= self.cy <= self.height):
      raise ValueError(f"Principal point outside image bounds: cx={self.cx}, cy={self.cy}")

    # Typical distortion coefficients are small values
    if any(abs(k) > 10.0 for k in self.distortion):
      raise ValueError(f"Distortion coefficients seem unreasonable: {self.distortion}")

  def __eq__(self, other):
    if not isinstance(other, CameraParams):
      return NotImplemented
    return self.to_dict() == other.to_dict()

  def __str__(self):
    """String representation of camera parameters."""
    coeffs = ", ".join(f"{k:.6f}" for k in self.distortion)
    return (f"CameraParams(id={self.camera_id}, model={self.model}, "
            f"size={self.width}x{self.height}, "
            f"fx={self.fx}, fy={self.fy}, cx={self.cx}, cy={self.cy}, "
            f"distortion=[{coeffs}])")

  def __repr__(self):
    """Detailed representation of camera parameters."""
    return self.__str__()


def camera_params_from_dict(data):
  """
  Build CameraParams from a parsed camera_info style mapping.

  Parameters:
  - data: dictionary with image_width, image_height, camera_matrix, distortion_model
    and distortion_coefficients entries

  Returns:
  Validated CameraParams object.

  Raises:
  ValueError if parameters are missing or invalid.
  """
  if not isinstance(data, dict):
    raise ValueError("Camera description must be a mapping")

  try:
    width = data['image_width']
    height = data['image_height']
    camera_name = data.get('camera_name', 'unknown')
    model = normalize_model_name(data.get('distortion_model', 'none'))

    if model == 'SPHERICAL':
      camera_params = CameraParams(camera_id=camera_name, model=model,
                                   width=width, height=height)
      camera_params.validate()
      return camera_params

    camera_matrix_data = data['camera_matrix']['data']
    if len(camera_matrix_data) != 9:
      raise ValueError("Camera matrix must have 9 elements")

    # Camera matrix is stored row-wise: [fx, 0, cx, 0, fy, cy, 0, 0, 1]
    fx = camera_matrix_data[0]
    cx = camera_matrix_data[2]
    fy = camera_matrix_data[4]
    cy = camera_matrix_data[5]

    distortion_data = []
    if DISTORTION_SIZES[model] > 0:
      distortion_data = data['distortion_coefficients']['data']
      if len(distortion_data) != DISTORTION_SIZES[model]:
        raise ValueError(f"{model} distortion coefficients must have "
                         f"{DISTORTION_SIZES[model]} elements")

    camera_params = CameraParams(
      camera_id=camera_name,
      model=model,
      width=width,
      height=height,
      fx=fx,
      fy=fy,
      cx=cx,
      cy=cy,
      distortion=distortion_data
    )

    camera_params.validate()

    return camera_params

  except KeyError as e:
    raise ValueError(f"Missing required camera parameter: {e}")
  except TypeError as e:
    raise ValueError(f"Invalid camera parameter format: {e}")


def parse_camera_params(filename):
  """
  Parse camera parameters from YAML file and return CameraParams object.

  Expected YAML format with OpenCV intrinsics structure.

  Parameters:
  - filename: path to YAML camera parameters file

  Returns:
  CameraParams object with loaded parameters.

  Raises:
  ValueError if file format is invalid or parameters are missing.
  FileNotFoundError if camera file doesn't exist.
  """
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Camera parameters file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")

  try:
    return camera_params_from_dict(data)
  except ValueError as e:
    raise ValueError(f"Invalid camera parameters in '{filename}': {e}")
