import binascii
import struct
from pathlib import Path

from PIL import Image
import pytest

from gbtile import cli
from gbtile.cli import ConvertOptions, build_parser, main, write_output
from gbtile.converter import ConversionError

COLORS = [(255, 255, 255), (170, 170, 170), (85, 85, 85), (0, 0, 0), (255, 0, 0)]


def _write_png(path: Path, size=(16, 8), colors=2) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGB", size, COLORS[0])
    for i in range(1, colors):
        image.putpixel((i, 0), COLORS[i])
    image.save(path)
    return path


def test_gbdk_output(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "hero.png")
    target = tmp_path / "hero.c"

    assert main(["-i", str(source), "-o", str(target)]) == 0

    text = target.read_text()
    assert text.startswith("const unsigned char hero[] = {\n")
    out = capsys.readouterr().out
    assert f"wrote {target}" in out
    assert "tile rows: 1, tile columns: 2, colors: 2" in out


def test_rgbds_output(tmp_path) -> None:
    source = _write_png(tmp_path / "font.png", size=(8, 16), colors=1)
    target = tmp_path / "font.asm"

    assert main(["-i", str(source), "-o", str(target), "-t", "rgbds"]) == 0

    lines = target.read_text().splitlines()
    assert lines[0] == 'SECTION "font", ROM0'
    assert "EXPORT font, font_end" in lines
    assert lines[-1] == "font_end:"
    assert sum(1 for line in lines if line.startswith("    db ")) == 2


def test_too_many_colors_writes_nothing(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "busy.png", colors=5)
    target = tmp_path / "busy.c"

    assert main(["-i", str(source), "-o", str(target)]) == 1

    assert not target.exists()
    assert "Too many colors" in capsys.readouterr().err


def test_bad_dimensions_writes_nothing(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "odd.png", size=(10, 8))
    target = tmp_path / "odd.c"

    assert main(["-i", str(source), "-o", str(target)]) == 1

    assert not target.exists()
    assert "multiple of 8" in capsys.readouterr().err


def test_existing_output_requires_force(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "hero.png")
    target = tmp_path / "hero.c"
    target.write_text("keep me")

    assert main(["-i", str(source), "-o", str(target)]) == 1
    assert target.read_text() == "keep me"
    assert "--force" in capsys.readouterr().err

    assert main(["-i", str(source), "-o", str(target), "--force"]) == 0
    assert target.read_text().startswith("const unsigned char hero[]")


def test_batch_into_directory(tmp_path) -> None:
    first = _write_png(tmp_path / "in" / "walk.png")
    second = _write_png(tmp_path / "in" / "jump.png", size=(8, 8), colors=3)
    out_dir = tmp_path / "out"

    assert main(["-i", str(first), "-i", str(second), "-o", str(out_dir), "-t", "rgbds", "-q"]) == 0

    assert (out_dir / "walk.asm").read_text().startswith('SECTION "walk", ROM0')
    assert (out_dir / "jump.asm").read_text().startswith('SECTION "jump", ROM0')


def test_single_input_into_existing_directory(tmp_path) -> None:
    source = _write_png(tmp_path / "hero.png")
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    assert main(["-i", str(source), "-o", str(out_dir), "-q"]) == 0

    assert (out_dir / "hero.c").exists()


def test_batch_rejects_duplicate_names(tmp_path, capsys) -> None:
    first = _write_png(tmp_path / "a" / "tiles.png")
    second = _write_png(tmp_path / "b" / "tiles.png")

    assert main(["-i", str(first), "-i", str(second), "-o", str(tmp_path / "out")]) == 1

    assert "Duplicate output name" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_quiet_prints_nothing(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "hero.png")

    assert main(["-i", str(source), "-o", str(tmp_path / "hero.c"), "-q"]) == 0

    assert capsys.readouterr().out == ""


def test_symbol_warning_is_reported(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / "my-hero.png")

    assert main(["-i", str(source), "-o", str(tmp_path / "out.c"), "-q"]) == 0

    assert "Warning:" in capsys.readouterr().err
    assert "my-hero[]" in (tmp_path / "out.c").read_text()


def test_missing_input(tmp_path, capsys) -> None:
    assert main(["-i", str(tmp_path / "nope.png"), "-o", str(tmp_path / "nope.c")]) == 1

    assert "not found" in capsys.readouterr().err
    assert not (tmp_path / "nope.c").exists()


def test_unknown_output_type_is_rejected_by_parser() -> None:
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["-i", "a.png", "-o", "a.c", "-t", "wla"])

    assert excinfo.value.code == 2


def test_convert_options_validation() -> None:
    assert ConvertOptions().output_type == "gbdk"
    with pytest.raises(ConversionError):
        ConvertOptions(output_type="wla")


def test_oversized_image_fails_cleanly(tmp_path, capsys) -> None:
    signature = b"\x89PNG\r\n\x1a\n"
    ihdr_data = struct.pack(">IIBBBBB", 20000, 10000, 8, 2, 0, 0, 0)
    ihdr = (
        struct.pack(">I", len(ihdr_data))
        + b"IHDR"
        + ihdr_data
        + struct.pack(">I", binascii.crc32(b"IHDR" + ihdr_data) & 0xFFFFFFFF)
    )
    source = tmp_path / "huge.png"
    source.write_bytes(signature + ihdr)
    target = tmp_path / "huge.c"

    assert main(["-i", str(source), "-o", str(target)]) == 1

    assert not target.exists()
    assert "too large" in capsys.readouterr().err


def test_failed_write_keeps_previous_output(tmp_path, monkeypatch, capsys) -> None:
    source = _write_png(tmp_path / "hero.png")
    target = tmp_path / "hero.c"
    target.write_text("keep me")

    def fail_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(cli.os, "replace", fail_replace)

    assert main(["-i", str(source), "-o", str(target), "--force"]) == 1

    assert target.read_text() == "keep me"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["hero.c", "hero.png"]
    assert "Failed to write" in capsys.readouterr().err


def test_write_output_replaces_whole_file(tmp_path) -> None:
    target = tmp_path / "tiles.c"
    target.write_text("old contents that are longer than the new ones")

    write_output(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["tiles.c"]
