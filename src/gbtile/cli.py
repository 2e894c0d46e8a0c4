"""Command line interface for the Game Boy tile generator."""

from __future__ import annotations

import argparse
import os
import sys
import warnings
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from .converter import (
    MAX_COLORS,
    MAX_DIMENSION,
    TILE_SIZE,
    ConversionError,
    ConversionStats,
    OutputError,
    convert_png,
    format_stats,
)
from .formatter import DEFAULT_OUTPUT_TYPE, OUTPUT_TYPES, output_extension, render


@dataclass
class ConvertOptions:
    """Options collected from the command line."""

    output_type: str = DEFAULT_OUTPUT_TYPE  # gbdk, rgbds
    force: bool = False
    quiet: bool = False

    def __post_init__(self) -> None:
        if self.output_type not in OUTPUT_TYPES:
            raise ConversionError(
                f"Unknown output type: {self.output_type} (expected one of {', '.join(OUTPUT_TYPES)})"
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gbtile",
        description=(
            "Generate Game Boy tiles from PNG images as GBDK (C) or RGBDS (assembly) data.\n"
            f"Images must be a multiple of {TILE_SIZE} pixels in each direction, at most "
            f"{MAX_DIMENSION}x{MAX_DIMENSION}, and use at most {MAX_COLORS} colors.\n"
            "Color indices are assigned in the order colors first appear, scanning from the "
            "top-left pixel."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-i",
        "--input",
        action="append",
        required=True,
        help="The PNG image to generate tiles from (can be provided multiple times)",
    )
    parser.add_argument(
        "-o",
        "--output",
        required=True,
        help="The output file to generate, or a directory when several inputs are given",
    )
    parser.add_argument(
        "-t",
        "--output-type",
        choices=OUTPUT_TYPES,
        default=DEFAULT_OUTPUT_TYPE,
        help=f"The output type. Defaults to '{DEFAULT_OUTPUT_TYPE}'",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite existing files without prompting",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not print progress or tile statistics",
    )
    return parser


def plan_outputs(inputs: Sequence[Path], output: Path, output_type: str) -> List[Path]:
    """Decide the target file for each input.

    A single input writes to ``output`` unless it names an existing directory.
    Several inputs always write ``<stem><ext>`` files into ``output``.
    """

    if len(inputs) == 1 and not output.is_dir():
        return [output]

    if output.exists() and not output.is_dir():
        raise ConversionError(f"Output must be a directory when converting several images: {output}")

    extension = output_extension(output_type)
    targets: List[Path] = []
    seen = set()
    for path in inputs:
        name = f"{path.stem}{extension}"
        if name in seen:
            raise ConversionError(f"Duplicate output name would occur: {name}")
        seen.add(name)
        targets.append(output / name)
    return targets


def check_conflicts(targets: Sequence[Path], force: bool) -> None:
    if force:
        return
    conflicts = [str(target) for target in targets if target.exists()]
    if conflicts:
        raise ConversionError(
            "Output files already exist (use --force to overwrite):\n" + "\n".join(conflicts)
        )


def write_output(target: Path, text: str) -> None:
    """Write ``text`` next to ``target`` first, then move it into place.

    The target is either left untouched or fully replaced.
    """

    staging = target.with_name(f".{target.name}.tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        staging.write_text(text, encoding="utf-8")
        os.replace(staging, target)
    except OSError as exc:
        with suppress(OSError):
            staging.unlink()
        raise OutputError(f"Failed to write {target}: {exc}") from exc


def convert_file(source: Path, target: Path, options: ConvertOptions) -> ConversionStats:
    """Convert one image and write the rendered source to ``target``.

    Nothing is written unless conversion and rendering both succeed.
    """

    result = convert_png(source)
    text = render(result.tileset, result.name, options.output_type)
    write_output(target, text)
    return result.stats


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = ConvertOptions(
            output_type=args.output_type,
            force=args.force,
            quiet=args.quiet,
        )
        inputs = [Path(raw) for raw in args.input]
        targets = plan_outputs(inputs, Path(args.output), options.output_type)
        check_conflicts(targets, options.force)

        for source, target in zip(inputs, targets):
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                stats = convert_file(source, target, options)
            for warning in caught:
                print(f"Warning: {warning.message}", file=sys.stderr)
            if not options.quiet:
                print(f"wrote {target}")
                print(f"  {format_stats(stats)}")
        return 0
    except ConversionError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
