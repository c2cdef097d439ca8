"""
Tile Renderer

Cuts planned cells out of a decoded image, pads edge cells to a full tile
with zero (transparent where the mode has alpha) pixels and encodes each
tile in the source format.
"""

import io
import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

from PIL import Image

from sat_ingest.core.logging import get_logger
from sat_ingest.engines.tiling.images import open_source_image
from sat_ingest.engines.tiling.planner import TilePlan, TilePlanEntry

logger = get_logger(__name__)

# Modes the JPEG encoder writes directly
JPEG_MODES = ("L", "RGB", "CMYK")


@dataclass(frozen=True)
class RenderedTile:
    name: str
    data: bytes
    content_type: str = "application/octet-stream"


class TileRenderer:
    """Renders TilePlan entries into encoded S x S tiles."""

    def __init__(self, tile_size: int = 256):
        self.tile_size = tile_size

    async def render(self, data: bytes, plan: TilePlan) -> AsyncIterator[RenderedTile]:
        """
        Yield one encoded tile per plan entry, in plan order.

        The source image stays decoded while the generator is alive and is
        released when it finishes or is closed (use contextlib.aclosing).
        """
        with open_source_image(data, load=True) as image:
            image_format = image.format or "PNG"
            content_type = Image.MIME.get(image_format, "application/octet-stream")

            logger.debug(
                "render_started",
                format=image_format,
                mode=image.mode,
                tiles=len(plan),
            )

            for entry in plan.entries:
                payload = await asyncio.to_thread(self.render_tile, image, entry, image_format)
                yield RenderedTile(name=entry.file_name, data=payload, content_type=content_type)

    def render_tile(self, image: Image.Image, entry: TilePlanEntry, image_format: str) -> bytes:
        tile = image.crop(entry.box)

        if entry.needs_padding:
            tile = self.pad_tile(image, tile)

        if image_format == "JPEG" and tile.mode not in JPEG_MODES:
            converted = tile.convert("RGB")
            tile.close()
            tile = converted

        buffer = io.BytesIO()
        try:
            tile.save(buffer, format=image_format)
        finally:
            tile.close()
        return buffer.getvalue()

    def pad_tile(self, image: Image.Image, tile: Image.Image) -> Image.Image:
        """
        Extend a cropped edge cell to S x S on the right and bottom.

        Padding is zero, or fully transparent where the mode has alpha. A
        palette image pads with its transparent index; without one it is
        widened to RGBA first.
        """
        fill = 0
        if tile.mode == "P":
            transparency = image.info.get("transparency")
            if isinstance(transparency, int):
                fill = transparency
            else:
                converted = tile.convert("RGBA")
                tile.close()
                tile = converted

        padded = Image.new(tile.mode, (self.tile_size, self.tile_size), fill)
        if tile.mode == "P":
            padded.putpalette(image.getpalette())
            padded.info["transparency"] = fill
        padded.paste(tile, (0, 0))
        tile.close()
        return padded
