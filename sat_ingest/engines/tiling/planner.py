"""
Tile Planner

Splits a W x H image into a grid of S x S cells. Cells on the right and
bottom edges may be smaller than S; they carry the padding needed to bring
the rendered tile back to S x S.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sat_ingest.core.exceptions import InvalidImageError
from sat_ingest.engines.tiling.images import ImageInfo


@dataclass(frozen=True)
class TilePlanEntry:
    row: int
    column: int
    top: int
    left: int
    width: int
    height: int
    padding_right: int
    padding_bottom: int
    file_name: str

    @property
    def needs_padding(self) -> bool:
        return self.padding_right > 0 or self.padding_bottom > 0

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """Source rectangle as a (left, upper, right, lower) crop box."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class TilePlan:
    width: int
    height: int
    tile_size: int
    num_rows: int
    num_columns: int
    entries: List[TilePlanEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)


def split_file_name(file_name: str) -> Tuple[str, str]:
    """Split on the last '.' into (base name, extension)."""
    base, _, extension = file_name.rpartition(".")
    if not base:
        return extension, ""
    return base, extension


def pad_index(index: int, count: int) -> str:
    """Zero-pad index to the width of the largest index (count - 1)."""
    return str(index).zfill(len(str(max(count - 1, 0))))


def tile_file_name(
    base_name: str,
    extension: str,
    row: int,
    column: int,
    num_rows: int,
    num_columns: int,
) -> str:
    name = f"{base_name}_{pad_index(row, num_rows)}_{pad_index(column, num_columns)}"
    return f"{name}.{extension}" if extension else name


def plan_tiles(
    width: Optional[int],
    height: Optional[int],
    file_name: str,
    tile_size: int = 256,
) -> TilePlan:
    """Compute the tile grid for an image of the given size."""
    if not width or not height or width < 0 or height < 0:
        raise InvalidImageError("Cannot calculate the number of split images")
    if tile_size <= 0:
        raise InvalidImageError(f"Tile size must be positive, got {tile_size}")

    num_columns = math.ceil(width / tile_size)
    num_rows = math.ceil(height / tile_size)
    base_name, extension = split_file_name(file_name)

    entries = []
    for row in range(num_rows):
        for column in range(num_columns):
            start_x = column * tile_size
            start_y = row * tile_size
            end_x = min((column + 1) * tile_size, width)
            end_y = min((row + 1) * tile_size, height)
            rect_width = end_x - start_x
            rect_height = end_y - start_y

            entries.append(TilePlanEntry(
                row=row,
                column=column,
                top=start_y,
                left=start_x,
                width=rect_width,
                height=rect_height,
                padding_right=tile_size - rect_width,
                padding_bottom=tile_size - rect_height,
                file_name=tile_file_name(base_name, extension, row, column, num_rows, num_columns),
            ))

    return TilePlan(
        width=width,
        height=height,
        tile_size=tile_size,
        num_rows=num_rows,
        num_columns=num_columns,
        entries=entries,
    )


def plan_image(info: ImageInfo, file_name: str, tile_size: int = 256) -> TilePlan:
    """Plan tiles for an image whose header has been read."""
    if not info.format:
        raise InvalidImageError("Missing image format")
    return plan_tiles(info.width, info.height, file_name, tile_size)
