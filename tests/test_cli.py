import numpy as np
import PIL.Image
import pytest

import mandel
from escapetime import Viewport


def _parse(*args):
    parser = mandel.build_parser()
    return parser, parser.parse_args(list(args))


def test_default_output_is_single_image(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    parser, opt = _parse("render")
    config = mandel.resolve_output_config(opt, parser)
    assert config.modes == ("image",)
    assert config.image_path == tmp_path / "mandelbrot.png"
    assert config.gif_path is None and config.frame_dir is None


def test_output_suffix_follows_format(tmp_path):
    parser, opt = _parse("render", "--format", "jpg", "--output", str(tmp_path / "still"))
    config = mandel.resolve_output_config(opt, parser)
    assert config.image_path == tmp_path / "still.jpg"


def test_mismatched_extension_is_rejected(tmp_path):
    parser, opt = _parse("render", "--output", str(tmp_path / "still.jpg"))
    with pytest.raises(SystemExit):
        mandel.resolve_output_config(opt, parser)


def test_gif_and_image_share_directory(tmp_path):
    parser, opt = _parse("render", "--mode", "gif", "--mode", "image", "--output", str(tmp_path))
    config = mandel.resolve_output_config(opt, parser)
    assert config.gif_path == tmp_path / "refine.gif"
    assert config.image_path == tmp_path / "mandelbrot.png"


def test_frame_dir_requires_frames_mode(tmp_path):
    parser, opt = _parse("render", "--frame-dir", str(tmp_path))
    with pytest.raises(SystemExit):
        mandel.resolve_output_config(opt, parser)


def test_unknown_mode(tmp_path):
    parser, opt = _parse("render", "--mode", "mono")
    with pytest.raises(SystemExit):
        mandel.resolve_output_config(opt, parser)


def test_build_viewport_fills_missing_resolution():
    _, opt = _parse("render", "--x-res", "70")
    viewport = mandel.build_viewport(opt, (840, 600))
    assert viewport == Viewport(70, 50, -0.75, 0.0, 3.5, 2.5)


def test_build_viewport_lock_aspect():
    _, opt = _parse("render", "--x-res", "100", "--y-res", "100", "--lock-aspect")
    assert mandel.build_viewport(opt, (840, 600)).y_width == pytest.approx(3.5)


def test_palette_options():
    _, opt = _parse("render", "--palette-mode", "normalize", "--gamma", "0.5", "--invert", "--inside-color", "#ffffff")
    options = mandel.build_palette_options(opt)
    assert options == {"mode": "normalize", "gamma": 0.5, "invert": True, "inside": (1.0, 1.0, 1.0)}


def test_invalid_settings_exit(tmp_path):
    with pytest.raises(SystemExit):
        mandel.main(["render", "--cpu", "--escape-radius", "1.0", "--output", str(tmp_path / "x.png")])


def test_render_still_end_to_end(tmp_path):
    out = tmp_path / "still.png"
    mandel.main(["render", "--cpu", "--no-parallel", "--x-res", "35", "--y-res", "25",
                 "--max-iterations", "50", "--output", str(out)])
    with PIL.Image.open(out) as image:
        assert image.size == (35, 25)
        pixels = np.asarray(image.convert("RGB"))
    # the center of the default view lies inside the set
    assert not pixels[12, 17].any()


def test_render_refinement_recording(tmp_path):
    mandel.main(["render", "--cpu", "--x-res", "20", "--y-res", "14", "--max-iterations", "30",
                 "--step-iterations", "10", "--mode", "gif", "--mode", "frames",
                 "--output", str(tmp_path / "movie.gif"), "--frame-dir", str(tmp_path / "frames")])
    frames = sorted((tmp_path / "frames").iterdir())
    assert len(frames) == 3
    with PIL.Image.open(tmp_path / "movie.gif") as image:
        assert image.n_frames >= 2
