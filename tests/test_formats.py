import pytest

from image_converter.conversion_engine.formats import OutputFormat


def test_extensions():
    assert [f.extension for f in OutputFormat] == ["jpg", "png", "tiff", "heic"]


def test_encoder_configuration():
    assert OutputFormat.JPEG.config.save_options() == {"Q": 90}
    assert OutputFormat.HEIC.config.save_options() == {"Q": 85, "compression": "hevc"}
    assert OutputFormat.HEIC.config.fallback_save_options() == [{"Q": 85, "compression": "av1"}]
    assert OutputFormat.JPEG.config.fallback_save_options() == []
    assert OutputFormat.PNG.config.save_options() == {}
    assert OutputFormat.TIFF.config.save_options() == {}
    assert not OutputFormat.JPEG.config.has_alpha
    assert all(f.config.has_alpha for f in (OutputFormat.PNG, OutputFormat.TIFF, OutputFormat.HEIC))
    assert {f.config.bit_depth for f in OutputFormat} == {8}
    assert {f.config.colour_space for f in OutputFormat} == {"srgb"}


@pytest.mark.parametrize(
    ("text", "expected"),
    [("jpeg", OutputFormat.JPEG), ("JPG", OutputFormat.JPEG), (".png", OutputFormat.PNG),
     ("Tiff", OutputFormat.TIFF), ("heic", OutputFormat.HEIC)],
)
def test_parse(text, expected):
    assert OutputFormat.parse(text) is expected


@pytest.mark.parametrize("text", ["", "tif", "heif", "webp"])
def test_parse_rejects_unknown(text):
    with pytest.raises(ValueError):
        OutputFormat.parse(text)
