"""
ImageCodec - Resizes and encodes images using Pillow.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageOps

from .errors import CodecError

ImageSource = Union[Path, str, bytes]


@dataclass(frozen=True)
class EncodeOptions:
    """
    Parameters for one resize + encode call.

    Attributes:
        target_width: Maximum output width
        target_height: Optional maximum output height (fit inside)
        allow_upscale: Enlarge images smaller than the target
        strip_metadata: Drop EXIF and ICC data
        format: 'webp', 'avif' or 'jpeg'
        quality: Encoder quality, already clamped for the format
        effort: Encoder effort, already clamped for the format
    """
    target_width: int
    format: str
    quality: int
    effort: int
    target_height: Optional[int] = None
    allow_upscale: bool = False
    strip_metadata: bool = True


@dataclass(frozen=True)
class EncodedImage:
    """Encoded output bytes and resulting dimensions."""
    data: bytes
    width: int
    height: int


class ImageCodec:
    """
    Produces resized, re-encoded variants of images using Pillow.
    """

    PILLOW_FORMATS = {
        'webp': 'WEBP',
        'avif': 'AVIF',
        'jpeg': 'JPEG',
    }

    CONTENT_TYPES = {
        'webp': 'image/webp',
        'avif': 'image/avif',
        'jpeg': 'image/jpeg',
    }

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize codec.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    def transform(self, source: ImageSource, options: EncodeOptions) -> EncodedImage:
        """
        Resize and encode one image.

        Args:
            source: Path to the image, or its encoded bytes
            options: Resize and encoder settings

        Returns:
            EncodedImage with output bytes and dimensions

        Raises:
            CodecError: If the image cannot be decoded or encoded
        """
        if options.format not in self.PILLOW_FORMATS:
            raise CodecError(f"Unsupported output format: {options.format}")

        try:
            with self._open(source) as original:
                img = ImageOps.exif_transpose(original)
                exif = img.getexif()
                icc_profile = img.info.get('icc_profile')

                target = self._target_size(img.size, options)
                if target != img.size:
                    img = img.resize(target, Image.Resampling.LANCZOS)

                img = self._convert_color_mode(img, options.format)

                output = io.BytesIO()
                save_options = self._save_options(options)
                if not options.strip_metadata:
                    if len(exif):
                        save_options['exif'] = exif.tobytes()
                    if icc_profile:
                        save_options['icc_profile'] = icc_profile

                img.save(output, format=self.PILLOW_FORMATS[options.format], **save_options)
                return EncodedImage(data=output.getvalue(), width=img.width, height=img.height)

        except CodecError:
            raise
        except Exception as e:
            self.logger.debug(f"Codec failure for {self._describe(source)}: {e}")
            raise CodecError(str(e)) from e

    def probe(self, path: Union[Path, str]) -> Tuple[int, int]:
        """
        Read the dimensions of an existing image without decoding pixels.

        Raises:
            CodecError: If the file is not a readable image
        """
        try:
            with Image.open(path) as img:
                return img.size
        except Exception as e:
            raise CodecError(str(e)) from e

    def get_content_type(self, fmt: str) -> str:
        """Get content type for an output format."""
        return self.CONTENT_TYPES.get(fmt.lower(), 'application/octet-stream')

    @staticmethod
    def _open(source: ImageSource) -> Image.Image:
        if isinstance(source, bytes):
            return Image.open(io.BytesIO(source))
        return Image.open(source)

    @staticmethod
    def _describe(source: ImageSource) -> str:
        if isinstance(source, bytes):
            return f"<{len(source)} bytes>"
        return str(source)

    @staticmethod
    def _target_size(size: Tuple[int, int], options: EncodeOptions) -> Tuple[int, int]:
        """Compute the 'fit inside' size for the requested bounds."""
        width, height = size
        scale = options.target_width / width
        if options.target_height:
            scale = min(scale, options.target_height / height)
        if not options.allow_upscale:
            scale = min(scale, 1.0)
        return max(1, round(width * scale)), max(1, round(height * scale))

    def _convert_color_mode(self, img: Image.Image, fmt: str) -> Image.Image:
        """Convert image to a color mode the output format can store."""
        if fmt == 'jpeg':
            # No alpha in JPEG: flatten onto white
            if img.mode in ('RGBA', 'LA') or (img.mode == 'P' and 'transparency' in img.info):
                img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                return background
            if img.mode != 'RGB':
                return img.convert('RGB')
            return img

        if img.mode in ('RGB', 'RGBA'):
            return img
        if img.mode in ('LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info):
            return img.convert('RGBA')
        return img.convert('RGB')

    @staticmethod
    def _save_options(options: EncodeOptions) -> dict:
        """Map quality/effort onto the Pillow encoder's parameters."""
        if options.format == 'webp':
            return {'quality': options.quality, 'method': min(options.effort, 6)}
        if options.format == 'avif':
            # Pillow's AVIF speed runs the other way: 0 is slowest/best
            return {'quality': options.quality, 'speed': max(0, min(10, 10 - options.effort))}
        return {'quality': options.quality, 'optimize': True, 'progressive': True}
