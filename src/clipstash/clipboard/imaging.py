import io
import logging
from typing import Optional, Union

from PIL import Image

logger = logging.getLogger(__name__)

PNG_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}


def to_png(source: Union[bytes, Image.Image]) -> Optional[bytes]:
    """Re-encode clipboard image data as PNG.

    Every stored image goes through here so equal pixels compare equal
    whatever format the clipboard offered. Original format metadata is lost.
    Returns None when the data cannot be decoded.
    """
    try:
        if isinstance(source, Image.Image):
            image = source
        else:
            if not source:
                return None
            image = Image.open(io.BytesIO(source))
        image.load()
        if image.mode not in PNG_MODES:
            image = image.convert("RGBA")

        output = io.BytesIO()
        image.save(output, format="PNG")
        return output.getvalue()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.debug("Could not decode clipboard image: %s", exc)
        return None
