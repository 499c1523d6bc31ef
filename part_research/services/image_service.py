import base64
import binascii
import io
import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from part_research.config import Settings, settings as default_settings
from part_research.exceptions import ImageLoadError
from part_research.schemas.research import ImageInput

_DATA_URL = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


class ImageService:
    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    def load(self, image_ref: str) -> ImageInput:
        """Resolve a path, http(s) URL or data: URL into an image the vision provider accepts."""
        ref = image_ref.strip()
        if ref.startswith(("http://", "https://")):
            return ImageInput(url=ref)

        match = _DATA_URL.match(ref)
        if match:
            try:
                raw = base64.b64decode(match.group("data"), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ImageLoadError(f"Invalid base64 image data: {exc}") from exc
            return self.encode_bytes(raw, match.group("mime"))

        path = Path(ref)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ImageLoadError(f"Could not read image {ref}: {exc}") from exc
        return self.encode_bytes(raw, self._get_media_type(path))

    def encode_bytes(self, data: bytes, media_type: str = "image/jpeg") -> ImageInput:
        """Base64-encode image bytes, downscaling anything larger than the configured limit."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                if max(img.size) > self.config.max_image_dimension:
                    data = self._downscale(img)
                    media_type = "image/jpeg"
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageLoadError(f"Unreadable image data: {exc}") from exc
        return ImageInput(media_type=media_type, data=base64.b64encode(data).decode("utf-8"))

    def _downscale(self, img: Image.Image) -> bytes:
        limit = self.config.max_image_dimension
        resized = img.convert("RGB")
        resized.thumbnail((limit, limit))
        buf = io.BytesIO()
        resized.save(buf, format="JPEG", quality=85)
        return buf.getvalue()

    def _get_media_type(self, path: Path) -> str:
        return MEDIA_TYPES.get(path.suffix.lower(), "image/jpeg")
