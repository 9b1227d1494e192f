import logging
import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

from argparse import ArgumentParser

from escapetime import (
    BudgetChange,
    FractalError,
    LiveSession,
    Pan,
    PaletteChange,
    Quit,
    RenderSettings,
    Reset,
    Resize,
    Step,
    TogglePause,
    Viewport,
    Zoom,
    fit_resolution,
    get_palette,
    render_still,
)
from escapetime.device import pick_device
from escapetime.output import FrameSequenceSink, GifSink, ImageSink
from escapetime.palette import BUILTIN_PALETTES, MODES, PALETTE_CYCLE, SHADINGS, parse_hex_color


@dataclass
class OutputConfig:
    modes: tuple[str, ...]
    gif_path: Path | None
    image_path: Path | None
    frame_dir: Path | None
    image_format: str


def _add_view_arguments(parser):
    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of iterations per pixel',
                        metavar='MAX_ITERATIONS', default=2000)

    parser.add_argument('--step-iterations', type=int,
                        dest='step_iterations', help='iterations added to every unfinished pixel per refinement pass',
                        metavar='STEP_ITERATIONS', default=32)

    parser.add_argument('--escape-radius', type=float,
                        dest='escape_radius', help='bailout radius; must be at least 2',
                        metavar='ESCAPE_RADIUS', default=2.0)

    parser.add_argument('--x-res', type=int,
                        dest='x_res', help='resolution of samples along the x-axis',
                        metavar='X_RES', default=None)

    parser.add_argument('--y-res', type=int,
                        dest='y_res', help='resolution of samples along the y-axis',
                        metavar='Y_RES', default=None)

    parser.add_argument('--x-center', type=float,
                        dest='x_center', help='x coordinate in the complex plane at the center of the view',
                        metavar='X_CENTER', default=-0.75)

    parser.add_argument('--x-width', type=float,
                        dest='x_width', help='width of the sample window in the complex plane',
                        metavar='X_WIDTH', default=3.5)

    parser.add_argument('--y-center', type=float,
                        dest='y_center', help='y coordinate in the complex plane at the center of the view',
                        metavar='Y_CENTER', default=0)

    parser.add_argument('--y-width', type=float,
                        dest='y_width', help='height of the sample window in the complex plane',
                        metavar='Y_WIDTH', default=2.5)

    parser.add_argument('--lock-aspect', action='store_true',
                        help='Maintains y_width = x_width * (y_res/x_res) to avoid stretching.')

    parser.add_argument('--palette', type=str, default='classic',
                        help='built-in palette (%s) or any matplotlib colormap name' % ', '.join(BUILTIN_PALETTES))
    parser.add_argument('--palette-mode', choices=MODES, default=None,
                        help='how smoothed escape values are spread over the palette')
    parser.add_argument('--period', type=float, default=None,
                        help='iterations per palette cycle (cycle and stripes modes)')
    parser.add_argument('--gamma', type=float, default=None, help='Gamma correction for the normalize mode.')
    parser.add_argument('--invert', action='store_true', help='Invert the selected palette.')
    parser.add_argument('--shading', choices=SHADINGS, default=None, help='Surface shading applied to escaped pixels.')
    parser.add_argument('--inside-color', type=str, default=None,
                        help='Hex color for points inside the Mandelbrot set.')

    parser.add_argument('--no-parallel', dest='parallel', action='store_false',
                        help='evaluate row bands sequentially on the calling thread')
    parser.add_argument('--workers', type=int, default=None,
                        help='number of worker threads (default: one per CPU)')
    parser.add_argument('--band-rows', type=int, dest='band_rows', default=16,
                        help='rows per unit of parallel work')
    parser.add_argument('--cpu', action='store_true', help='never place the computation on a GPU')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')


def build_parser():
    parser = ArgumentParser(description='Escape-time renderer for the Mandelbrot set.')
    commands = parser.add_subparsers(dest='command', required=True)

    render = commands.add_parser('render', help='render a still image (optionally recording the refinement)')
    _add_view_arguments(render)
    render.add_argument('--mode', dest='modes', action='append', metavar='MODE',
                        help='Output modes to generate. May be repeated. Choices: image, gif, frames.')
    render.add_argument('--output', dest='output', type=str,
                        help='Destination for single-file outputs (gif/image) or container directory when both are requested.')
    render.add_argument('--frame-dir', dest='frame_dir', type=str,
                        help='Directory in which to store the refinement frame sequence.')
    render.add_argument('--format', type=str,
                        dest='format', help='file format for image-based outputs. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT', default='png')

    explore = commands.add_parser('explore', help='open an interactive, progressively refined view')
    _add_view_arguments(explore)

    return parser


def resolve_output_config(opt, parser: ArgumentParser) -> OutputConfig:
    valid_modes = {"image", "gif", "frames"}
    modes = opt.modes or ["image"]

    normalized_modes: list[str] = []
    for mode in modes:
        if mode not in valid_modes:
            parser.error(f"Unknown output mode '{mode}'. Valid choices: {', '.join(sorted(valid_modes))}.")
        if mode not in normalized_modes:
            normalized_modes.append(mode)
    modes_tuple = tuple(normalized_modes)

    image_format = (getattr(opt, "format", "png") or "png").lower().lstrip(".") or "png"

    frame_dir_path: Path | None = None
    if "frames" in modes_tuple:
        frame_dir_path = Path(opt.frame_dir or "./frames").expanduser().resolve()
    elif opt.frame_dir is not None:
        parser.error("--frame-dir is only valid with the frames mode.")

    file_modes = [mode for mode in modes_tuple if mode in {"gif", "image"}]
    output_arg = getattr(opt, "output", None)
    gif_path: Path | None = None
    image_path: Path | None = None

    if not file_modes:
        if output_arg:
            parser.error("--output is only valid when gif or image modes are requested.")
    elif len(file_modes) == 1:
        mode = file_modes[0]
        if output_arg:
            output_path = Path(output_arg).expanduser()
            if output_arg.endswith(("/", os.sep)) or output_path.is_dir():
                parser.error("--output must be a file path when a single file-based mode is selected.")
            if mode == "gif":
                if output_path.suffix and output_path.suffix.lower() != ".gif":
                    parser.error("GIF outputs must end with .gif.")
                gif_path = output_path.with_suffix(".gif").resolve()
            else:
                expected_suffix = f".{image_format}"
                if output_path.suffix and output_path.suffix.lower() != expected_suffix:
                    parser.error(f"--output extension {output_path.suffix} does not match --format {image_format}.")
                image_path = output_path.with_suffix(expected_suffix).resolve()
        elif mode == "gif":
            gif_path = Path("refine.gif").resolve()
        else:
            image_path = Path(f"mandelbrot.{image_format}").resolve()
    else:
        base_dir = Path(output_arg).expanduser() if output_arg else Path.cwd()
        if base_dir.exists() and not base_dir.is_dir():
            parser.error("--output must be a directory when both gif and image modes are active.")
        gif_path = (base_dir / "refine.gif").resolve()
        image_path = (base_dir / f"mandelbrot.{image_format}").resolve()

    return OutputConfig(
        modes=modes_tuple,
        gif_path=gif_path,
        image_path=image_path,
        frame_dir=frame_dir_path,
        image_format=image_format,
    )


def build_settings(opt) -> RenderSettings:
    return RenderSettings(
        max_iterations=opt.max_iterations,
        step_iterations=opt.step_iterations,
        escape_radius=opt.escape_radius,
        parallel=opt.parallel,
        workers=opt.workers,
        band_rows=opt.band_rows,
    )


def build_palette_options(opt) -> dict:
    options = {}
    if opt.palette_mode is not None:
        options["mode"] = opt.palette_mode
    if opt.period is not None:
        options["period"] = opt.period
    if opt.gamma is not None:
        options["gamma"] = opt.gamma
    if opt.invert:
        options["invert"] = True
    if opt.shading is not None:
        options["shading"] = opt.shading
    if opt.inside_color is not None:
        options["inside"] = parse_hex_color(opt.inside_color)
    return options


def build_viewport(opt, default_res) -> Viewport:
    x_res, y_res = opt.x_res, opt.y_res
    if x_res is None and y_res is None:
        x_res, y_res = default_res
    elif x_res is None:
        x_res = max(1, int(round(y_res * opt.x_width / opt.y_width)))
    elif y_res is None:
        y_res = max(1, int(round(x_res * opt.y_width / opt.x_width)))

    viewport = Viewport(
        x_res=x_res,
        y_res=y_res,
        x_center=opt.x_center,
        y_center=opt.y_center,
        x_width=opt.x_width,
        y_width=opt.y_width,
    )
    return viewport.with_aspect() if opt.lock_aspect else viewport


def run_render(opt, parser: ArgumentParser, device: str) -> None:
    output_config = resolve_output_config(opt, parser)
    try:
        settings = build_settings(opt)
        palette = get_palette(opt.palette, **build_palette_options(opt))
        viewport = build_viewport(opt, (840, 600))
    except FractalError as exc:
        parser.error(str(exc))

    log("Rendering %dx%d at %d iterations" % (viewport.x_res, viewport.y_res, settings.max_iterations))

    if output_config.modes == ("image",):
        frame = render_still(viewport, settings, palette, device=device)
        sink = ImageSink(output_config.image_path, output_config.image_format)
        sink.write(frame)
        sink.close()
        log("Wrote %s" % output_config.image_path)
        return

    sinks = []
    if output_config.gif_path is not None:
        sinks.append(GifSink(output_config.gif_path))
    if output_config.frame_dir is not None:
        passes = -(-settings.max_iterations // settings.step_iterations)
        digits = max(3, len(str(passes)))
        sinks.append(FrameSequenceSink(output_config.frame_dir, output_config.image_format, digits=digits))
    if output_config.image_path is not None:
        sinks.append(ImageSink(output_config.image_path, output_config.image_format))

    session = LiveSession(viewport, settings, palette, device=device)
    try:
        for i, frame in enumerate(session.run_until_converged()):
            print("pass {0}, budget {1} of {2}".format(i, session.budget, settings.max_iterations), end='\r')
            for sink in sinks:
                sink.write(frame)
    finally:
        session.close()
        for sink in sinks:
            sink.close()
    print()


class ExplorerWindow:
    """Matplotlib window translating key, scroll and resize events into session events."""

    frame_interval_ms = 16

    def __init__(self, session: LiveSession, pan_fraction: float = 0.1, zoom_factor: float = 0.8) -> None:
        import matplotlib.pyplot as plt

        self.plt = plt
        self.session = session
        self.pan_fraction = pan_fraction
        self.zoom_factor = zoom_factor
        self.pending = []

        for key in list(plt.rcParams):
            if key.startswith("keymap."):
                plt.rcParams[key] = []

        viewport = session.viewport
        dpi = 100
        self.figure = plt.figure(figsize=(viewport.x_res / dpi, viewport.y_res / dpi), dpi=dpi)
        self.axes = self.figure.add_axes((0, 0, 1, 1))
        self.axes.set_axis_off()
        self.image = self.axes.imshow(session.frame, interpolation='nearest')
        self._update_title()

        canvas = self.figure.canvas
        canvas.mpl_connect('key_press_event', self.on_key)
        canvas.mpl_connect('scroll_event', self.on_scroll)
        canvas.mpl_connect('resize_event', self.on_resize)
        canvas.mpl_connect('close_event', self.on_close)
        self.timer = canvas.new_timer(interval=self.frame_interval_ms)
        self.timer.add_callback(self.on_timer)

    def _update_title(self) -> None:
        manager = self.figure.canvas.manager
        if manager is None:
            return
        viewport = self.session.viewport
        manager.set_window_title(
            f"Mandelbrot - {viewport.x_res}x{viewport.y_res} - {self.session.palette.name} - "
            f"{self.session.budget}/{self.session.settings.max_iterations}"
        )

    def on_key(self, event) -> None:
        viewport = self.session.viewport
        d_col = viewport.x_res * self.pan_fraction
        d_row = viewport.y_res * self.pan_fraction
        key = event.key
        if key in ('q', 'escape'):
            self.pending.append(Quit())
        elif key == 'left':
            self.pending.append(Pan(-d_col, 0))
        elif key == 'right':
            self.pending.append(Pan(d_col, 0))
        elif key == 'up':
            self.pending.append(Pan(0, -d_row))
        elif key == 'down':
            self.pending.append(Pan(0, d_row))
        elif key in ('+', '='):
            self.pending.append(Zoom(self.zoom_factor, event.ydata, event.xdata))
        elif key == '-':
            self.pending.append(Zoom(1.0 / self.zoom_factor, event.ydata, event.xdata))
        elif key == 'r':
            self.pending.append(Reset())
        elif key == ' ':
            self.pending.append(TogglePause())
        elif key == 'n':
            self.pending.append(Step())
        elif key == '[':
            self.pending.append(BudgetChange(max(1, self.session.settings.max_iterations // 2)))
        elif key == ']':
            self.pending.append(BudgetChange(self.session.settings.max_iterations * 2))
        elif key is not None and key.isdigit():
            index = (int(key) - 1) % len(PALETTE_CYCLE)
            self.pending.append(PaletteChange(get_palette(PALETTE_CYCLE[index])))

    def on_scroll(self, event) -> None:
        factor = self.zoom_factor if event.button == 'up' else 1.0 / self.zoom_factor
        self.pending.append(Zoom(factor, event.ydata, event.xdata))

    def on_resize(self, event) -> None:
        width, height = int(event.width), int(event.height)
        viewport = self.session.viewport
        if width > 0 and height > 0 and (width, height) != (viewport.x_res, viewport.y_res):
            self.pending.append(Resize(width, height))

    def on_close(self, event) -> None:
        self.pending.append(Quit())

    def on_timer(self) -> None:
        while self.pending:
            self.session.handle(self.pending.pop(0))
        if self.session.closed:
            self.timer.stop()
            self.plt.close(self.figure)
            return
        frame = self.session.tick()
        if frame is None:
            return
        height, width = frame.shape[:2]
        if self.image.get_array().shape[:2] != (height, width):
            self.image.set_extent((-0.5, width - 0.5, height - 0.5, -0.5))
        self.image.set_data(frame)
        self._update_title()
        self.figure.canvas.draw_idle()

    def show(self) -> None:
        self.timer.start()
        self.plt.show()


def run_explore(opt, parser: ArgumentParser, device: str) -> None:
    try:
        settings = build_settings(opt)
        palette = get_palette(opt.palette, **build_palette_options(opt))
        viewport = build_viewport(opt, fit_resolution(opt.x_width, opt.y_width))
    except FractalError as exc:
        parser.error(str(exc))

    log("Exploring %dx%d, +%d iterations per pass" % (viewport.x_res, viewport.y_res, settings.step_iterations))
    session = LiveSession(viewport, settings, palette, device=device)
    try:
        ExplorerWindow(session).show()
    finally:
        session.close()


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)
    if VERBOSE:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    log("TensorFlow version: %s" % tf.__version__)
    device = pick_device(prefer_gpu=not opt.cpu)
    log("Using %s" % device)

    if opt.command == 'render':
        run_render(opt, parser, device)
    else:
        run_explore(opt, parser, device)


if __name__ == '__main__':
    main()
