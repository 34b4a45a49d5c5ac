"""Image decoding and working-resolution scaling.

Turns whatever the caller hands us (encoded bytes, a file path or an
OpenCV-style array) into an RGBA8 ``PixelBuffer`` and rescales it so the
longer side reaches the working resolution. Small images are upscaled,
large ones are kept as-is. Encoded photos are turned upright according to
their EXIF Orientation tag.
"""

import io
import logging
import struct
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from src.common.exceptions import DecodeError
from src.common.types import PixelBuffer

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, memoryview, str, Path, np.ndarray]

INTERPOLATION_METHODS = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "area": cv2.INTER_AREA,
}

EXIF_ORIENTATION_TAG = 0x0112

# EXIF orientation -> transform giving the upright image (any channel count)
ORIENTATION_TRANSFORMS = {
    2: lambda a: a[:, ::-1],
    3: lambda a: a[::-1, ::-1],
    4: lambda a: a[::-1],
    5: lambda a: a.swapaxes(0, 1),
    6: lambda a: np.rot90(a, -1),
    7: lambda a: a[::-1, ::-1].swapaxes(0, 1),
    8: lambda a: np.rot90(a, 1),
}


def resolve_interpolation(name: str) -> int:
    """Map an interpolation name from config to the OpenCV flag.

    Raises:
        ValueError: If the name is not one of INTERPOLATION_METHODS.
    """
    try:
        return INTERPOLATION_METHODS[name.lower()]
    except KeyError as e:
        raise ValueError(
            f"Unknown interpolation '{name}', "
            f"expected one of {sorted(INTERPOLATION_METHODS)}"
        ) from e


def read_exif_orientation(data: bytes) -> int:
    """Return the EXIF Orientation tag of encoded image data (1 if absent)."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            orientation = image.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except (
        UnidentifiedImageError,
        OSError,
        EOFError,
        SyntaxError,
        ValueError,
        struct.error,
        Image.DecompressionBombError,
    ) as e:
        logger.debug(f"No EXIF metadata readable: {e}")
        return 1
    return orientation if isinstance(orientation, int) else 1


def apply_exif_orientation(array: np.ndarray, orientation: int) -> np.ndarray:
    """Rotate/flip decoded pixels so they appear upright.

    Unknown orientation values leave the array unchanged.
    """
    transform = ORIENTATION_TRANSFORMS.get(orientation)
    if transform is None:
        return array
    logger.debug(f"Applying EXIF orientation {orientation}")
    return np.ascontiguousarray(transform(array))


def _read_source(source: ImageSource) -> np.ndarray:
    if isinstance(source, np.ndarray):
        return source

    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise DecodeError(f"Image file not found: {path}")
        source = path.read_bytes()

    if isinstance(source, (bytes, bytearray, memoryview)):
        buffer = np.frombuffer(source, dtype=np.uint8)
        if buffer.size == 0:
            raise DecodeError("Image data is empty")

        # IMREAD_UNCHANGED keeps alpha and ignores EXIF orientation
        try:
            decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise DecodeError(f"OpenCV failed to decode image: {e}") from e

        if decoded is None:
            raise DecodeError(
                "Unrecognized or corrupt image data", {"num_bytes": int(buffer.size)}
            )
        return apply_exif_orientation(decoded, read_exif_orientation(bytes(source)))

    raise DecodeError(f"Unsupported image source type: {type(source).__name__}")


def _to_rgba(array: np.ndarray) -> np.ndarray:
    """Convert an OpenCV-style array (GRAY, BGR or BGRA) to RGBA8."""
    if array.size == 0:
        raise DecodeError("Image array is empty")

    if array.dtype == np.uint16:
        # 16-bit PNG/TIFF: keep the most significant byte
        array = (array >> 8).astype(np.uint8)
    elif array.dtype == np.bool_:
        array = array.astype(np.uint8) * 255
    elif array.dtype != np.uint8:
        raise DecodeError(f"Unsupported pixel dtype: {array.dtype}")

    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]

    if array.ndim == 2:
        return cv2.cvtColor(array, cv2.COLOR_GRAY2RGBA)
    if array.ndim == 3 and array.shape[2] == 3:
        return cv2.cvtColor(array, cv2.COLOR_BGR2RGBA)
    if array.ndim == 3 and array.shape[2] == 4:
        return cv2.cvtColor(array, cv2.COLOR_BGRA2RGBA)

    raise DecodeError(f"Unsupported image shape: {array.shape}")


def decode_image(source: ImageSource) -> np.ndarray:
    """
    Decode an image source into an RGBA8 array.

    Arrays follow the OpenCV convention: (H, W) grayscale, (H, W, 3) BGR or
    (H, W, 4) BGRA.

    Args:
        source: Encoded bytes, a path to an image file, or a numpy array.

    Returns:
        Array of shape (H, W, 4), dtype uint8, RGBA channel order.

    Raises:
        DecodeError: If the source cannot be read or decoded.
    """
    array = _read_source(source)
    if array.ndim not in (2, 3) or min(array.shape[:2]) == 0:
        raise DecodeError(f"Unsupported image shape: {array.shape}")
    return _to_rgba(array)


def scale_to_working_resolution(
    rgba: np.ndarray,
    target_long_side: int = 800,
    interpolation: str = "cubic",
) -> np.ndarray:
    """
    Upscale an image so its longer side reaches ``target_long_side``.

    Images already at or above the target are returned unchanged.

    Args:
        rgba: Input RGBA array.
        target_long_side: Working resolution for the longer side.
        interpolation: Interpolation method name.

    Returns:
        Scaled RGBA array.
    """
    height, width = rgba.shape[:2]
    scale = max(1.0, target_long_side / float(max(height, width)))
    if scale == 1.0:
        return rgba

    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))

    logger.debug(
        f"Scaling image {width}x{height} -> {new_width}x{new_height} "
        f"(scale={scale:.2f})"
    )
    return cv2.resize(
        rgba, (new_width, new_height), interpolation=resolve_interpolation(interpolation)
    )


def upscale_for_recognition(
    rgba: np.ndarray,
    min_height: int = 120,
    max_scale: float = 4.0,
    interpolation: str = "cubic",
) -> np.ndarray:
    """
    Upscale a small region so text strokes are tall enough for OCR.

    Args:
        rgba: Region pixels (RGBA).
        min_height: Regions shorter than this are enlarged.
        max_scale: Upper bound on the enlargement factor.
        interpolation: Interpolation method name.

    Returns:
        Original array if tall enough, otherwise the enlarged copy.
    """
    height, width = rgba.shape[:2]
    if height >= min_height:
        return rgba

    scale = min(max_scale, min_height / float(height))
    if scale <= 1.0:
        return rgba

    new_size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    logger.debug(
        f"Upscaling region {width}x{height} -> {new_size[0]}x{new_size[1]} "
        f"(min_height={min_height}px)"
    )
    return cv2.resize(rgba, new_size, interpolation=resolve_interpolation(interpolation))


class ImageLoader:
    """Decodes caller input and produces the working-resolution PixelBuffer.

    Args:
        target_long_side: Longer-side length images are upscaled to.
        interpolation: Interpolation used when upscaling.

    Example:
        >>> loader = ImageLoader(target_long_side=800)
        >>> pixels = loader.load(Path("card.jpg"))
        >>> print(pixels.width, pixels.height)
    """

    def __init__(self, target_long_side: int = 800, interpolation: str = "cubic"):
        self.target_long_side = target_long_side
        self.interpolation = interpolation
        resolve_interpolation(interpolation)

    def load(self, source: ImageSource) -> PixelBuffer:
        """
        Decode and scale an image.

        Raises:
            DecodeError: If the image cannot be decoded.
        """
        rgba = decode_image(source)
        original_height, original_width = rgba.shape[:2]
        scaled = scale_to_working_resolution(
            rgba, self.target_long_side, self.interpolation
        )

        logger.info(
            f"Loaded image {original_width}x{original_height} "
            f"(working size {scaled.shape[1]}x{scaled.shape[0]})"
        )
        return PixelBuffer(data=np.ascontiguousarray(scaled))
