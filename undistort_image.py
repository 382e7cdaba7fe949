import argparse
import os
import sys
import time
import cv2
from camremap import (Undistorter, apply_remap_table_opencv, create_camera,
                      parse_camera_params)

MODES = ('fast', 'accurate', 'opencv')


def default_output_path(image_path, mode):
  base_name = os.path.splitext(image_path)[0]
  return f"{base_name}_undistorted_{mode}.jpg"


def undistort_image(image_path, camera_in_file, camera_out_file=None, mode='accurate', output_path=None):
  """
  Convert an image file from the input camera to the output camera and save it.

  Parameters:
  - image_path: image captured by the input camera
  - camera_in_file: YAML parameters of the input camera
  - camera_out_file: YAML parameters of the output camera; if None, the input
    camera's distortion-free pinhole is used
  - mode: 'fast', 'accurate' or 'opencv'
  - output_path: where to write the result (default: <image>_undistorted_<mode>.jpg)

  Returns:
  - Path of the written image
  """
  if mode not in MODES:
    raise ValueError(f"Unknown mode '{mode}', expected one of {', '.join(MODES)}")

  camera_in_params = parse_camera_params(camera_in_file)
  if camera_out_file is not None:
    camera_out_params = parse_camera_params(camera_out_file)
  else:
    camera_out_params = camera_in_params.to_pinhole(camera_id=f"{camera_in_params.camera_id}_pinhole")

  print(f"Input camera: {camera_in_params}")
  print(f"Output camera: {camera_out_params}")

  img = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
  if img is None:
    raise ValueError(f"Could not load image: {image_path}")
  print(f"Loaded image: {img.shape}")

  undistorter = Undistorter(create_camera(camera_in_params), create_camera(camera_out_params))
  if not undistorter.valid:
    raise ValueError("Camera pair is not valid, cannot build remap table")

  start_time = time.time()
  if mode == 'fast':
    result, ok = undistorter.undistort_fast(img)
  elif mode == 'accurate':
    result, ok = undistorter.undistort(img)
  else:
    result, ok = apply_remap_table_opencv(undistorter.remap_table, img)
  print(f"\033[33m{mode} conversion time: {time.time() - start_time:.4f} seconds\033[0m")

  if not ok:
    raise ValueError(f"Image size {img.shape[1]}x{img.shape[0]} does not match input camera "
                     f"{camera_in_params.width}x{camera_in_params.height}")

  if output_path is None:
    output_path = default_output_path(image_path, mode)
  if not cv2.imwrite(output_path, result):
    raise ValueError(f"Could not write image: {output_path}")
  print(f"Saved: {output_path}")

  return output_path


def build_parser():
  parser = argparse.ArgumentParser(
    description="Convert an image from one camera model to another using a precomputed remap table.")
  parser.add_argument("image", help="input image captured by the input camera")
  parser.add_argument("--camera-in", required=True, help="YAML parameters of the input camera")
  parser.add_argument("--camera-out", default=None,
                      help="YAML parameters of the output camera (default: distortion-free pinhole)")
  parser.add_argument("--mode", choices=MODES, default='accurate',
                      help="resampling mode (default: accurate)")
  parser.add_argument("--output", default=None, help="output image path")
  return parser


def main(argv=None):
  args = build_parser().parse_args(argv)

  try:
    undistort_image(args.image, args.camera_in, args.camera_out, args.mode, args.output)
  except (FileNotFoundError, ValueError) as e:
    print(f"Error: {e}", file=sys.stderr)
    return 1

  return 0


if __name__ == "__main__":
  sys.exit(main())
