import pytest

pyvips = pytest.importorskip("pyvips")

from pathlib import Path  # noqa: E402

from image_converter.conversion_engine.converter import convert_image, destination_for  # noqa: E402
from image_converter.conversion_engine.errors import ConversionStage  # noqa: E402
from image_converter.conversion_engine.formats import OutputFormat  # noqa: E402


def _rgb_image(w: int, h: int):
    r = pyvips.Image.black(w, h) + 50
    g = pyvips.Image.black(w, h) + 100
    b = pyvips.Image.black(w, h) + 150
    return r.bandjoin([g, b]).cast("uchar").copy(interpretation="srgb")


def _write_source(path: Path, w: int = 8, h: int = 6) -> Path:
    _rgb_image(w, h).write_to_file(str(path))
    return path


def test_destination_is_stem_plus_format_extension(tmp_path: Path):
    assert destination_for("/in/IMG_0001.CR2", tmp_path, OutputFormat.JPEG) == tmp_path / "IMG_0001.jpg"
    assert destination_for("/in/a.b.nef", tmp_path, OutputFormat.TIFF) == tmp_path / "a.b.tiff"
    assert destination_for("/in/x.png", tmp_path, OutputFormat.HEIC) == tmp_path / "x.heic"


def test_png_output_is_rgba8(tmp_path: Path):
    src = _write_source(tmp_path / "in.jpg")
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    outcome = convert_image(src, out_dir, OutputFormat.PNG)

    assert outcome.success, outcome.error
    assert outcome.destination == str(out_dir / "in.png")
    out = pyvips.Image.new_from_file(outcome.destination)
    assert (out.width, out.height) == (8, 6)
    assert out.bands == 4
    assert out.format == "uchar"


def test_jpeg_output_drops_alpha(tmp_path: Path):
    rgba = _rgb_image(5, 4).bandjoin(128)
    src = tmp_path / "alpha.png"
    rgba.write_to_file(str(src))

    outcome = convert_image(src, tmp_path, OutputFormat.JPEG)

    assert outcome.success, outcome.error
    out = pyvips.Image.new_from_file(outcome.destination)
    assert out.bands == 3
    assert Path(outcome.destination).read_bytes()[:2] == b"\xff\xd8"


def test_tiff_output_from_greyscale_source(tmp_path: Path):
    src = tmp_path / "grey.png"
    (pyvips.Image.black(6, 6) + 90).cast("uchar").write_to_file(str(src))

    outcome = convert_image(src, tmp_path, OutputFormat.TIFF)

    assert outcome.success, outcome.error
    out = pyvips.Image.new_from_file(outcome.destination)
    assert out.bands == 4
    assert Path(outcome.destination).suffix == ".tiff"


def test_existing_destination_is_overwritten(tmp_path: Path):
    src = _write_source(tmp_path / "same.png")
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    stale = out_dir / "same.jpg"
    stale.write_bytes(b"stale")

    outcome = convert_image(src, out_dir, OutputFormat.JPEG)

    assert outcome.success, outcome.error
    assert stale.read_bytes()[:2] == b"\xff\xd8"


def test_unreadable_source_is_a_decode_failure(tmp_path: Path):
    src = tmp_path / "broken.nef"
    src.write_bytes(b"not an image at all")

    outcome = convert_image(src, tmp_path, OutputFormat.JPEG)

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.stage is ConversionStage.DECODE
    assert not (tmp_path / "broken.jpg").exists()


def test_missing_destination_is_an_encode_failure_without_leftovers(tmp_path: Path):
    src = _write_source(tmp_path / "in.png")
    missing = tmp_path / "does" / "not" / "exist"

    outcome = convert_image(src, missing, OutputFormat.PNG)

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.stage is ConversionStage.ENCODE


def test_failed_encode_leaves_no_partial_file(tmp_path: Path, monkeypatch):
    from image_converter.conversion_engine import converter

    src = _write_source(tmp_path / "in.png")
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    def _failing_encode(image, target, config):  # noqa: ARG001
        Path(target).write_bytes(b"partial")
        raise OSError("disk full")

    monkeypatch.setattr(converter, "_encode", _failing_encode)

    outcome = convert_image(src, out_dir, OutputFormat.PNG)

    assert not outcome.success
    assert outcome.error.stage is ConversionStage.ENCODE
    assert "disk full" in str(outcome.error)
    assert list(out_dir.iterdir()) == []


def test_orientation_tag_is_applied(tmp_path: Path):
    src = tmp_path / "rotated.jpg"
    img = _rgb_image(8, 4).copy()
    img.set_type(pyvips.GValue.gint_type, "orientation", 6)
    img.write_to_file(str(src))

    loaded = pyvips.Image.new_from_file(str(src))
    if loaded.get_typeof("orientation") == 0 or loaded.get("orientation") != 6:
        pytest.skip("libvips build does not write the EXIF orientation tag")

    outcome = convert_image(src, tmp_path, OutputFormat.PNG)

    assert outcome.success, outcome.error
    out = pyvips.Image.new_from_file(outcome.destination)
    assert (out.width, out.height) == (4, 8)


def test_truncated_source_is_a_decode_failure(tmp_path: Path):
    full = tmp_path / "full.jpg"
    pyvips.Image.gaussnoise(400, 400).cast("uchar").write_to_file(str(full))
    data = full.read_bytes()
    src = tmp_path / "cut.jpg"
    src.write_bytes(data[: len(data) // 3])
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    outcome = convert_image(src, out_dir, OutputFormat.PNG)

    assert not outcome.success
    assert outcome.error.stage is ConversionStage.DECODE
    assert list(out_dir.iterdir()) == []


class _NoHevcImage:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def heifsave(self, target, **options):
        self.calls.append(options)
        if options["compression"] == "hevc":
            raise pyvips.Error("unable to call heifsave", "heifsave: Unsupported compression")
        Path(target).write_bytes(b"heif")


def test_heic_falls_back_to_av1_when_hevc_encoder_is_missing(tmp_path: Path):
    from image_converter.conversion_engine import converter

    image = _NoHevcImage()
    target = tmp_path / "x.heic"

    converter._encode(image, str(target), OutputFormat.HEIC.config)

    assert [c["compression"] for c in image.calls] == ["hevc", "av1"]
    assert all(c["Q"] == 85 for c in image.calls)
    assert target.read_bytes() == b"heif"


def test_other_encoder_errors_are_not_retried(tmp_path: Path):
    from image_converter.conversion_engine import converter

    class _Broken:
        calls = 0

        def heifsave(self, target, **options):  # noqa: ARG002
            _Broken.calls += 1
            raise pyvips.Error("unable to call heifsave", "heifsave: disk full")

    with pytest.raises(pyvips.Error):
        converter._encode(_Broken(), str(tmp_path / "x.heic"), OutputFormat.HEIC.config)
    assert _Broken.calls == 1


def test_heic_output_is_written(tmp_path: Path):
    if not pyvips.type_find("VipsOperation", "heifsave"):
        pytest.skip("libvips built without HEIF support")
    src = _write_source(tmp_path / "in.png", 16, 16)

    outcome = convert_image(src, tmp_path, OutputFormat.HEIC)

    if not outcome.success and "unsupported compression" in str(outcome.error).lower():
        pytest.skip("libheif has neither an HEVC nor an AV1 encoder")
    assert outcome.success, outcome.error
    assert outcome.destination == str(tmp_path / "in.heic")
    assert Path(outcome.destination).read_bytes()[4:8] == b"ftyp"
