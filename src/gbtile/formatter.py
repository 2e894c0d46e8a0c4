"""Render packed tile data as GBDK C source or RGBDS assembly."""

from __future__ import annotations

import re
import warnings
from typing import List

import jinja2

from .converter import ConversionError, TileSet

OUTPUT_TYPES = ("gbdk", "rgbds")
DEFAULT_OUTPUT_TYPE = "gbdk"

OUTPUT_EXTENSIONS = {
    "gbdk": ".c",
    "rgbds": ".asm",
}

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")

gbdk_template = """const unsigned char {{ name }}[] = {
{% for line in lines %}    {{ line }}{% if not loop.last %},{% endif %}
{% endfor %}};
"""

# Tile data lives in ROM0, the fixed bank.
rgbds_template = """SECTION "{{ name }}", ROM0

EXPORT {{ name }}, {{ name }}_end

{{ name }}:
{% for line in lines %}    db {{ line }}
{% endfor %}{{ name }}_end:
"""


def output_extension(output_type: str) -> str:
    try:
        return OUTPUT_EXTENSIONS[output_type]
    except KeyError as exc:
        raise ConversionError(f"Unknown output type: {output_type}") from exc


def _check_name(name: str) -> None:
    if not _IDENTIFIER.match(name):
        warnings.warn(
            f"'{name}' is not a valid C/assembly identifier; the generated source may not build",
            RuntimeWarning,
            stacklevel=3,
        )


def _hex_lines(tileset: TileSet, prefix: str) -> List[str]:
    return [", ".join(f"{prefix}{value:02X}" for value in tile) for tile in tileset]


def render_gbdk(tileset: TileSet, name: str) -> str:
    _check_name(name)
    template = jinja2.Template(gbdk_template, keep_trailing_newline=True)
    return template.render(name=name, lines=_hex_lines(tileset, "0x"))


def render_rgbds(tileset: TileSet, name: str) -> str:
    _check_name(name)
    template = jinja2.Template(rgbds_template, keep_trailing_newline=True)
    return template.render(name=name, lines=_hex_lines(tileset, "$"))


def render(tileset: TileSet, name: str, output_type: str = DEFAULT_OUTPUT_TYPE) -> str:
    if output_type == "gbdk":
        return render_gbdk(tileset, name)
    if output_type == "rgbds":
        return render_rgbds(tileset, name)
    raise ConversionError(f"Unknown output type: {output_type}")
