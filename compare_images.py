import sys
import cv2
import matplotlib.pyplot as plt


def _to_rgb(img):
  if img.ndim == 2:
    return cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
  return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def display_comparison(original_path, converted_path, output_path='comparison.png', show=True):
  """
  Display the original image and the converted image side by side for comparison.
  """
  original = cv2.imread(original_path)
  converted = cv2.imread(converted_path)

  if original is None or converted is None:
    print("Error: Could not load one or both images")
    return False

  fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(15, 7))

  ax1.imshow(_to_rgb(original))
  ax1.set_title('Original Image', fontsize=14)
  ax1.axis('off')

  ax2.imshow(_to_rgb(converted))
  ax2.set_title('Undistorted Image', fontsize=14)
  ax2.axis('off')

  plt.tight_layout()
  plt.savefig(output_path, dpi=150, bbox_inches='tight')
  if show:
    plt.show()
  plt.close(fig)

  print(f"Comparison saved as '{output_path}'")
  print(f"Original image shape: {original.shape}")
  print(f"Undistorted image shape: {converted.shape}")
  return True


if __name__ == "__main__":
  if len(sys.argv) < 3:
    print("Usage: python compare_images.py <original> <undistorted> [comparison.png]")
    sys.exit(1)
  output = sys.argv[3] if len(sys.argv) > 3 else 'comparison.png'
  sys.exit(0 if display_comparison(sys.argv[1], sys.argv[2], output) else 1)
