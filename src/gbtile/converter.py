"""Core conversion logic for the Game Boy tile generator."""

# Reference: Game Boy 2bpp tile format
# - A tile is 8x8 dots, each dot a 2-bit color index (0-3).
# - One tile occupies 16 bytes, two bytes per dot row (top to bottom).
# Byte    | Contents
# --------|------------------------------------------------------------
# 2n      | Row n, low bit of each dot  (bit 7 = leftmost dot)
# 2n + 1  | Row n, high bit of each dot (bit 7 = leftmost dot)
# Tiles are loaded into VRAM one after another, so the tile order of the
# generated data is left to right, then top to bottom.

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

Color = Tuple[int, ...]

TILE_SIZE = 8
TILE_BYTES = 16
MAX_DIMENSION = 256
MAX_COLORS = 4

# Modes that convert to 8-bit RGB(A) without losing distinct values.
SUPPORTED_MODES = {"1", "L", "LA", "P", "PA", "RGB", "RGBA", "RGBX"}


class ConversionError(Exception):
    """Base exception for conversion errors."""


class DecodeError(ConversionError):
    """Raised when the input image cannot be read."""


class DimensionError(ConversionError):
    """Raised when the image size cannot be split into tiles."""


class PaletteError(ConversionError):
    """Raised when the image colors cannot be mapped to a 2-bit palette."""


class TooManyColorsError(PaletteError):
    """Raised when a fifth distinct color is found."""

    def __init__(self, color: Color, position: Tuple[int, int], palette: Sequence[Color]):
        self.color = color
        self.position = position
        self.palette = tuple(palette)
        x, y = position
        super().__init__(
            f"Too many colors: {format_color(color)} at ({x}, {y}) would be color "
            f"#{len(self.palette) + 1}, only {MAX_COLORS} are allowed "
            f"(already used: {', '.join(format_color(c) for c in self.palette)})"
        )


class OutputError(ConversionError):
    """Raised when the generated source cannot be written."""


@dataclass(frozen=True)
class PixelGrid:
    width: int
    height: int
    pixels: Tuple[Color, ...]

    def __post_init__(self) -> None:
        if len(self.pixels) != self.width * self.height:
            raise ValueError(
                f"PixelGrid expects {self.width * self.height} pixels, got {len(self.pixels)}"
            )


@dataclass(frozen=True)
class Palette:
    """Colors in the order they were first seen; position is the index."""

    colors: Tuple[Color, ...]

    def index_of(self, color: Color) -> int:
        try:
            return self.colors.index(color)
        except ValueError as exc:
            raise PaletteError(f"Color {format_color(color)} is not in the palette") from exc

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)


@dataclass(frozen=True)
class IndexGrid:
    width: int
    height: int
    indices: bytes

    @property
    def tile_columns(self) -> int:
        return self.width // TILE_SIZE

    @property
    def tile_rows(self) -> int:
        return self.height // TILE_SIZE

    def tile(self, row: int, column: int) -> bytes:
        """Return the 64 indices of one tile, row by row."""
        if not (0 <= row < self.tile_rows and 0 <= column < self.tile_columns):
            raise IndexError(f"Tile ({row}, {column}) is outside the tile grid")
        top = row * TILE_SIZE
        left = column * TILE_SIZE
        block = bytearray()
        for y in range(top, top + TILE_SIZE):
            offset = y * self.width + left
            block.extend(self.indices[offset : offset + TILE_SIZE])
        return bytes(block)


@dataclass(frozen=True)
class TileSet:
    tiles: Tuple[bytes, ...]
    tile_columns: int
    tile_rows: int

    @property
    def data(self) -> bytes:
        return b"".join(self.tiles)

    def __len__(self) -> int:
        return len(self.tiles)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.tiles)

    def __getitem__(self, index: int) -> bytes:
        return self.tiles[index]


@dataclass(frozen=True)
class ConversionStats:
    tile_rows: int
    tile_columns: int
    color_count: int

    @property
    def tile_count(self) -> int:
        return self.tile_rows * self.tile_columns


@dataclass(frozen=True)
class ConversionResult:
    name: str
    tileset: TileSet
    palette: Palette
    stats: ConversionStats


def symbol_name(path: str | Path) -> str:
    """Array/label name for ``path``: the file name without its extension."""
    return Path(path).stem


def format_color(color: Color) -> str:
    return "(" + ",".join(str(c) for c in color) + ")"


def format_stats(stats: ConversionStats) -> str:
    return (
        f"tile rows: {stats.tile_rows}, tile columns: {stats.tile_columns}, "
        f"colors: {stats.color_count}"
    )


def _has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def pixel_grid_from_image(image: Image.Image) -> PixelGrid:
    """Read every pixel of ``image`` into a row-major PixelGrid.

    Images with an alpha channel (or a palette transparency key) keep alpha
    as a fourth component so transparent and opaque dots never compare equal.
    """

    if image.mode not in SUPPORTED_MODES:
        raise DecodeError(
            f"Unsupported image mode {image.mode}; use an 8-bit grayscale, indexed or RGB image"
        )
    mode = "RGBA" if _has_alpha(image) else "RGB"
    image = image.convert(mode)
    width, height = image.size
    access = image.load()
    pixels = tuple(access[x, y] for y in range(height) for x in range(width))
    return PixelGrid(width, height, pixels)


@contextmanager
def _open_image(path: Path) -> Iterator[Image.Image]:
    """Open ``path`` with Pillow, mapping read failures to conversion errors."""
    try:
        with Image.open(path) as img:
            yield img
    except FileNotFoundError as exc:
        raise DecodeError(f"Input file not found: {path}") from exc
    except Image.DecompressionBombError as exc:
        raise DimensionError(f"Image is far too large: {path} ({exc})") from exc
    except UnidentifiedImageError as exc:
        raise DecodeError(f"Unsupported image format: {path}") from exc
    except OSError as exc:
        raise DecodeError(f"Failed to read image: {path}") from exc


def load_pixel_grid(path: str | Path) -> PixelGrid:
    with _open_image(Path(path)) as img:
        return pixel_grid_from_image(img)


def validate_dimensions(width: int, height: int) -> None:
    for label, value in (("width", width), ("height", height)):
        if value <= 0 or value % TILE_SIZE != 0:
            raise DimensionError(
                f"Image {label} must be a positive multiple of {TILE_SIZE}, got {value}"
            )
        if value > MAX_DIMENSION:
            raise DimensionError(
                f"Image {label} must be at most {MAX_DIMENSION}, got {value}"
            )


def reduce_palette(grid: PixelGrid) -> Tuple[Palette, IndexGrid]:
    """Assign palette indices in first-seen order while scanning row by row.

    Colors are compared exactly; close shades are not merged. The scan stops
    at the first pixel that would need a fifth index.
    """

    lookup: Dict[Color, int] = {}
    indices = bytearray(len(grid.pixels))
    for offset, color in enumerate(grid.pixels):
        index = lookup.get(color)
        if index is None:
            if len(lookup) >= MAX_COLORS:
                position = (offset % grid.width, offset // grid.width)
                raise TooManyColorsError(color, position, list(lookup))
            index = len(lookup)
            lookup[color] = index
        indices[offset] = index

    return Palette(tuple(lookup)), IndexGrid(grid.width, grid.height, bytes(indices))


def pack_tile(indices: Sequence[int]) -> bytes:
    """Pack 64 row-major 2-bit indices into 16 bytes of interleaved bitplanes."""

    if len(indices) != TILE_SIZE * TILE_SIZE:
        raise ValueError(f"A tile needs {TILE_SIZE * TILE_SIZE} indices, got {len(indices)}")

    packed = bytearray()
    for row in range(TILE_SIZE):
        low = 0
        high = 0
        for index in indices[row * TILE_SIZE : (row + 1) * TILE_SIZE]:
            if not 0 <= index < MAX_COLORS:
                raise ValueError(f"Palette index out of range: {index}")
            low = (low << 1) | (index & 0x01)
            high = (high << 1) | ((index >> 1) & 0x01)
        packed.append(low)
        packed.append(high)
    return bytes(packed)


def decode_tile(data: bytes) -> List[List[int]]:
    """Unpack 16 bytes of tile data into 8 rows of 8 indices."""

    if len(data) != TILE_BYTES:
        raise ValueError(f"Tile data must be {TILE_BYTES} bytes, got {len(data)}")

    rows: List[List[int]] = []
    for row in range(TILE_SIZE):
        low = data[row * 2]
        high = data[row * 2 + 1]
        rows.append(
            [
                (((high >> bit) & 1) << 1) | ((low >> bit) & 1)
                for bit in range(7, -1, -1)
            ]
        )
    return rows


def encode_tiles(grid: IndexGrid) -> TileSet:
    tiles = tuple(
        pack_tile(grid.tile(row, column))
        for row in range(grid.tile_rows)
        for column in range(grid.tile_columns)
    )
    return TileSet(tiles, grid.tile_columns, grid.tile_rows)


def convert_pixel_grid(grid: PixelGrid) -> Tuple[TileSet, Palette, ConversionStats]:
    validate_dimensions(grid.width, grid.height)
    palette, index_grid = reduce_palette(grid)
    tileset = encode_tiles(index_grid)
    stats = ConversionStats(
        tile_rows=tileset.tile_rows,
        tile_columns=tileset.tile_columns,
        color_count=len(palette),
    )
    return tileset, palette, stats


def convert_image(image: Image.Image) -> Tuple[TileSet, Palette, ConversionStats]:
    """Convert an in-memory image to tiles.

    The size is checked before any pixel is read so oversized or misaligned
    inputs fail without a palette scan.
    """

    width, height = image.size
    validate_dimensions(width, height)
    return convert_pixel_grid(pixel_grid_from_image(image))


def convert_png(path: str | Path) -> ConversionResult:
    path = Path(path)
    with _open_image(path) as img:
        tileset, palette, stats = convert_image(img)
    return ConversionResult(symbol_name(path), tileset, palette, stats)
