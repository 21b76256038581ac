import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from image_ops.errors import ProcessingFailed, StagingFailed
from image_ops.options import (
    ResizeOptions, CropOptions, ConvertOptions, CompressOptions, WatermarkOptions,
)
from image_ops.processor import mime_type
from tests.conftest import FakeRunner
from tests.test_staging import BrokenFileSystem


def leftovers(tmp_path):
    return sorted(p.name for p in tmp_path.iterdir())


class TestTransforms:
    def test_resize_bytes_returns_output_and_cleans_up(self, processor, runner, tmp_path, png_bytes):
        out = processor.resize(png_bytes, ResizeOptions(100, 50, fit="contain"))
        assert out == b"OUTPUT"
        assert leftovers(tmp_path) == []
        command, argv = runner.calls[-1]
        assert command == "magick"
        assert argv[1:3] == ["-resize", "100x50"]
        assert argv[0].endswith(".png") and argv[-1].endswith(".png")
        assert argv[0] != argv[-1]

    def test_input_exists_while_tool_runs(self, processor, runner, png_bytes):
        processor.crop(png_bytes, CropOptions(0, 0, 1, 1))
        src = runner.last_args[0]
        assert src in runner.existing_at_spawn[-1]

    def test_caller_path_is_never_deleted(self, processor, runner, tmp_path, png_bytes):
        src = tmp_path / "mine.png"
        src.write_bytes(png_bytes)
        processor.crop(str(src), CropOptions(0, 0, 1, 1))
        assert runner.last_args[0] == str(src)
        assert leftovers(tmp_path) == ["mine.png"]

    def test_output_path_is_not_derived_from_caller_path(self, processor, runner, tmp_path):
        src = tmp_path / "mine.png"
        src.write_bytes(b"\x89PNG")
        processor.resize(str(src), ResizeOptions(width=10))
        assert not runner.last_args[-1].startswith(str(src))

    def test_convert_output_extension_follows_format(self, processor, runner, png_bytes):
        processor.convert(png_bytes, ConvertOptions("jpeg", quality=90))
        assert runner.last_args[-1].endswith(".jpg")
        assert runner.last_args[1:3] == ["-quality", "90"]

    def test_compress_applies_defaults(self, processor, runner, png_bytes):
        processor.compress(png_bytes, CompressOptions())
        assert runner.last_args[1:3] == ["-quality", "80"]
        assert runner.last_args[-1].endswith(".jpg")
        processor.compress(png_bytes, CompressOptions(format="png"))
        assert runner.last_args[1:5] == ["-quality", "100", "-define", "png:compression-level=9"]


class TestFailures:
    def test_nonzero_exit_raises_with_stderr(self, make_processor, tmp_path, png_bytes):
        runner = FakeRunner(exit_code=1, stderr=b"magick: improper image header `x.png'")
        processor = make_processor(runner)
        with pytest.raises(ProcessingFailed) as exc:
            processor.resize(png_bytes, ResizeOptions(10, 10))
        assert "improper image header" in exc.value.stderr
        assert exc.value.exit_code == 1
        assert exc.value.argv == runner.last_args
        assert leftovers(tmp_path) == []

    def test_success_without_output_file(self, make_processor, tmp_path, png_bytes):
        processor = make_processor(FakeRunner(write_output=False))
        with pytest.raises(ProcessingFailed, match="no readable output"):
            processor.convert(png_bytes, ConvertOptions("webp"))
        assert leftovers(tmp_path) == []

    def test_partial_output_is_removed_on_failure(self, make_processor, tmp_path, png_bytes):
        class PartialRunner(FakeRunner):
            def spawn(self, command, args):
                Path(args[-1]).write_bytes(b"half")
                return super().spawn(command, args)

        processor = make_processor(PartialRunner(exit_code=1, stderr=b"disk full"))
        with pytest.raises(ProcessingFailed):
            processor.crop(png_bytes, CropOptions(0, 0, 1, 1))
        assert leftovers(tmp_path) == []

    def test_spawn_error_propagates_and_cleans_up(self, make_processor, tmp_path, png_bytes):
        processor = make_processor(FakeRunner(missing={"magick"}))
        with pytest.raises(FileNotFoundError):
            processor.resize(png_bytes, ResizeOptions(10, 10))
        assert leftovers(tmp_path) == []

    def test_cleanup_failure_never_masks_processing_error(self, make_processor, tmp_path, png_bytes):
        runner = FakeRunner(exit_code=2, stderr=b"no decode delegate")
        processor = make_processor(runner, fs=BrokenFileSystem(fail_remove=True))
        with pytest.raises(ProcessingFailed, match="no decode delegate"):
            processor.resize(png_bytes, ResizeOptions(10, 10))

    def test_cleanup_failure_never_fails_a_success(self, make_processor, png_bytes):
        processor = make_processor(FakeRunner(), fs=BrokenFileSystem(fail_remove=True))
        assert processor.resize(png_bytes, ResizeOptions(10, 10)) == b"OUTPUT"

    def test_staging_failure(self, make_processor, runner, tmp_path, png_bytes):
        processor = make_processor(runner, fs=BrokenFileSystem(fail_write=True))
        with pytest.raises(StagingFailed):
            processor.resize(png_bytes, ResizeOptions(10, 10))
        assert runner.calls == []
        assert leftovers(tmp_path) == []


class TestWatermark:
    def test_text(self, processor, runner, png_bytes):
        processor.add_watermark(png_bytes, WatermarkOptions(type="text", text="hello", position="center"))
        assert "-annotate" in runner.last_args
        assert runner.last_args[runner.last_args.index("-gravity") + 1] == "Center"

    def test_text_opacity_is_reported_unsupported(self, processor, runner, png_bytes, caplog):
        with caplog.at_level(logging.WARNING, logger="image-ops.processor"):
            processor.add_watermark(png_bytes, WatermarkOptions(type="text", text="hi", opacity=0.3))
        assert any("not supported" in r.message for r in caplog.records)
        assert "-evaluate" not in runner.last_args

    def test_image_mark_bytes_staged_for_the_run(self, processor, runner, tmp_path, png_bytes):
        opts = WatermarkOptions(type="image", image=b"GIF89a...", opacity=0.5)
        processor.add_watermark(png_bytes, opts)
        mark = runner.last_args[2]
        assert mark.endswith(".gif")
        assert mark in runner.existing_at_spawn[-1]
        assert leftovers(tmp_path) == []

    def test_image_mark_released_when_composite_fails(self, make_processor, tmp_path, png_bytes):
        runner = FakeRunner(exit_code=1, stderr=b"composite failed")
        processor = make_processor(runner)
        with pytest.raises(ProcessingFailed):
            processor.add_watermark(png_bytes, WatermarkOptions(type="image", image=png_bytes))
        assert len(runner.existing_at_spawn[-1]) == 2
        assert leftovers(tmp_path) == []

    def test_image_mark_path_left_alone(self, processor, runner, tmp_path, png_bytes):
        mark = tmp_path / "logo.png"
        mark.write_bytes(png_bytes)
        processor.add_watermark(png_bytes, WatermarkOptions(type="image", image=str(mark)))
        assert runner.last_args[1] == str(mark)
        assert leftovers(tmp_path) == ["logo.png"]


class TestExtractInfo:
    def test_bytes(self, make_processor, tmp_path, png_bytes):
        runner = FakeRunner(stdout=b"1|1|PNG|67B\n")
        info = make_processor(runner).extract_info(png_bytes)
        assert info.as_dict() == {"width": 1, "height": 1, "format": "png",
                                  "mime_type": "image/png", "size": len(png_bytes)}
        assert runner.last_args[-1] == "info:"
        assert leftovers(tmp_path) == []

    def test_path_size_comes_from_stat(self, make_processor, tmp_path, png_bytes):
        src = tmp_path / "photo.jpg"
        src.write_bytes(b"\xff\xd8" + b"\x00" * 98)
        info = make_processor(FakeRunner(stdout=b"640|480|JPEG|100B")).extract_info(str(src))
        assert (info.format, info.mime_type, info.size) == ("jpeg", "image/jpeg", 100)

    def test_unparseable_numbers(self, make_processor, png_bytes):
        info = make_processor(FakeRunner(stdout=b"?|?|PNG|")).extract_info(png_bytes)
        assert (info.width, info.height) == (0, 0)

    def test_failure(self, make_processor, tmp_path, png_bytes):
        runner = FakeRunner(exit_code=1, stderr=b"identify: no decode delegate")
        with pytest.raises(ProcessingFailed, match="no decode delegate"):
            make_processor(runner).extract_info(png_bytes)
        assert leftovers(tmp_path) == []


@pytest.mark.parametrize("fmt,mime", [("PNG", "image/png"), ("jpg", "image/jpeg"),
                                      ("avif", "image/avif"), ("xcf", "image/png")])
def test_mime_type(fmt, mime):
    assert mime_type(fmt) == mime


def test_concurrent_calls_do_not_share_files(make_processor, tmp_path):
    processor = make_processor(FakeRunner(echo_input=True))
    sources = [b"\x89PNG" + str(i).encode() * 64 for i in range(24)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda s: processor.resize(s, ResizeOptions(10, 10)), sources))
    assert results == sources
    assert leftovers(tmp_path) == []


class FrameSplittingRunner(FakeRunner):
    """Writes one `<stem>-N.<ext>` per frame instead of the declared output,
    as the tool does when a multi-frame input meets a single-image format."""

    def __init__(self, frames=2, **kwargs):
        super().__init__(write_output=False, **kwargs)
        self.frames = frames

    def spawn(self, command, args):
        result = super().spawn(command, args)
        stem, ext = str(Path(args[-1]).with_suffix("")), Path(args[-1]).suffix
        for i in range(self.frames):
            Path(f"{stem}-{i}{ext}").write_bytes(b"frame")
        return result


class TestMultiFrameInput:
    def test_compress_of_animated_gif_leaves_nothing(self, make_processor, tmp_path):
        processor = make_processor(FrameSplittingRunner())
        with pytest.raises(ProcessingFailed):
            processor.compress(b"GIF89a" + b"\x00" * 32, CompressOptions())
        assert leftovers(tmp_path) == []

    @pytest.mark.parametrize("call", [
        lambda p, src: p.resize(src, ResizeOptions(10, 10)),
        lambda p, src: p.crop(src, CropOptions(0, 0, 1, 1)),
        lambda p, src: p.add_watermark(src, WatermarkOptions(type="text", text="x")),
    ])
    def test_png_outputs_leave_nothing(self, make_processor, tmp_path, call):
        processor = make_processor(FrameSplittingRunner(frames=4))
        with pytest.raises(ProcessingFailed):
            call(processor, b"GIF89a" + b"\x00" * 32)
        assert leftovers(tmp_path) == []


def test_unreadable_output_is_processing_failed(make_processor, tmp_path, png_bytes):
    class DirectoryRunner(FakeRunner):
        def spawn(self, command, args):
            Path(args[-1]).mkdir()
            return super().spawn(command, args)

    processor = make_processor(DirectoryRunner(write_output=False))
    with pytest.raises(ProcessingFailed, match="no readable output"):
        processor.resize(png_bytes, ResizeOptions(10, 10))
    assert leftovers(tmp_path) == []


def test_records_carry_the_callers_context(make_processor, png_bytes, caplog, monkeypatch):
    from image_ops.config import SERVICE_NAME
    from image_ops.logging_setup import configure_logging

    make_logger = configure_logging(to_stderr=False, to_journal=False)
    # configure_logging turns propagation off again; caplog listens on root
    monkeypatch.setattr(logging.getLogger(SERVICE_NAME), "propagate", True)
    processor = make_processor(FakeRunner(), logger=make_logger("processor", {"operation": "watermark"}))
    with caplog.at_level(logging.DEBUG, logger="image-ops.processor"):
        processor.add_watermark(png_bytes, WatermarkOptions(type="text", text="hi", opacity=0.5))
    records = [r for r in caplog.records if r.name == "image-ops.processor"]
    assert {r.levelname for r in records} == {"DEBUG", "WARNING"}
    assert all(r.ctx == {"operation": "watermark"} for r in records)
