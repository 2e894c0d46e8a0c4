"""Game Boy tile generator.

Converts PNG images with up to four colors into 2bpp Game Boy tile data and
renders it as GBDK C source or RGBDS assembly. It can be invoked through the
CLI (``gbtile`` or ``python -m gbtile``) or imported to convert images to
tiles in memory.
"""

from .converter import (
    ConversionError,
    ConversionResult,
    ConversionStats,
    DecodeError,
    DimensionError,
    IndexGrid,
    OutputError,
    Palette,
    PaletteError,
    PixelGrid,
    TileSet,
    TooManyColorsError,
    convert_image,
    convert_pixel_grid,
    convert_png,
    decode_tile,
    encode_tiles,
    load_pixel_grid,
    pack_tile,
    pixel_grid_from_image,
    reduce_palette,
    symbol_name,
    validate_dimensions,
)
from .formatter import OUTPUT_TYPES, render, render_gbdk, render_rgbds

__all__ = [
    "OUTPUT_TYPES",
    "ConversionError",
    "ConversionResult",
    "ConversionStats",
    "DecodeError",
    "DimensionError",
    "IndexGrid",
    "OutputError",
    "Palette",
    "PaletteError",
    "PixelGrid",
    "TileSet",
    "TooManyColorsError",
    "convert_image",
    "convert_pixel_grid",
    "convert_png",
    "decode_tile",
    "encode_tiles",
    "load_pixel_grid",
    "pack_tile",
    "pixel_grid_from_image",
    "reduce_palette",
    "render",
    "render_gbdk",
    "render_rgbds",
    "symbol_name",
    "validate_dimensions",
]
