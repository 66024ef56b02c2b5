from pathlib import Path

import anyio
import pytest

from conftest import video_bytes
from lessonvault.errors import IOFailure, MediaNotFound, RangeUnsatisfiable
from lessonvault.services import range_streamer
from lessonvault.services.range_streamer import ByteRange, RangeStreamer, parse_range_header, probe_media


def collect(streamer: RangeStreamer, path, start: int, length: int) -> list[bytes]:
    async def _run():
        return [chunk async for chunk in streamer.iter_window(path, start, length)]

    return anyio.run(_run)


class TestParseRangeHeader:
    def test_no_header(self):
        assert parse_range_header(None, 1000) is None

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("bytes=0-99", (0, 99)),
            ("bytes=0-", (0, 999)),
            ("bytes=500-", (500, 999)),
            ("bytes=999-999", (999, 999)),
            ("bytes=0-999", (0, 999)),
            ("  bytes=10-20 ", (10, 20)),
            ("BYTES=10-20", (10, 20)),
        ],
    )
    def test_valid(self, header, expected):
        r = parse_range_header(header, 1000)
        assert (r.start, r.end, r.total) == (*expected, 1000)

    @pytest.mark.parametrize(
        "header",
        [
            "bytes=1000-",  # start == length
            "bytes=5000-6000",
            "bytes=500-100",  # start > end
            "bytes=0-1000",  # end past EOF, not clamped
            "bytes=-500",  # suffix form
            "bytes=0-99,200-299",
            "bytes=abc-",
            "items=0-99",
            "bytes 0-99",
            "",
            "bytes=" + "9" * 5000 + "-",  # past int() digit limit
            "bytes=0-" + "9" * 5000,
            "bytes=" + "0" * 21 + "1-5",
        ],
    )
    def test_unsatisfiable(self, header):
        with pytest.raises(RangeUnsatisfiable) as exc:
            parse_range_header(header, 1000)
        assert exc.value.headers() == {"Content-Range": "bytes */1000"}
        assert exc.value.status_code == 416

    def test_empty_file_has_no_satisfiable_range(self):
        with pytest.raises(RangeUnsatisfiable):
            parse_range_header("bytes=0-", 0)

    def test_byte_range_helpers(self):
        r = ByteRange(start=0, end=99, total=1000)
        assert r.length == 100
        assert r.content_range() == "bytes 0-99/1000"


class TestStreamResponse:
    def test_full_response_headers(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(1000))
        response = RangeStreamer().stream(path, 1000, None, "video/webm")
        assert response.status_code == 200
        assert response.headers["content-length"] == "1000"
        assert response.headers["content-type"] == "video/webm"
        assert response.headers["accept-ranges"] == "bytes"
        assert "content-range" not in response.headers

    def test_partial_response_headers(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(1000))
        response = RangeStreamer().stream(path, 1000, "bytes=100-199", "video/mp4")
        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 100-199/1000"
        assert response.headers["content-length"] == "100"
        assert response.headers["cache-control"] == "private, max-age=3600"
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_bad_range_raises_before_any_response(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(1000))
        with pytest.raises(RangeUnsatisfiable):
            RangeStreamer().stream(path, 1000, "bytes=1000-", "video/mp4", video_id="v1")


class TestIterWindow:
    def test_reads_exact_window_in_bounded_chunks(self, tmp_path):
        data = video_bytes(10_000)
        path = tmp_path / "v.mp4"
        path.write_bytes(data)
        chunks = collect(RangeStreamer(chunk_size=1024), path, 1500, 5000)
        assert b"".join(chunks) == data[1500:6500]
        assert max(len(c) for c in chunks) <= 1024

    def test_zero_length_window(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(b"")
        assert collect(RangeStreamer(), path, 0, 0) == []

    def test_truncated_file_is_an_io_failure(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(100))
        with pytest.raises(IOFailure):
            collect(RangeStreamer(), path, 0, 200)

    def test_file_removed_after_probe(self, tmp_path):
        path = tmp_path / "gone.mp4"
        with pytest.raises(IOFailure):
            collect(RangeStreamer(), path, 0, 10)

    def test_early_close_releases_file(self, tmp_path, monkeypatch):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(10_000))
        opened = []

        def tracking_open(*args, **kwargs):
            f = open(*args, **kwargs)
            opened.append(f)
            return f

        monkeypatch.setattr(range_streamer, "open", tracking_open, raising=False)

        async def _run():
            gen = RangeStreamer(chunk_size=100).iter_window(path, 0, 10_000)
            first = await gen.__anext__()
            assert not opened[0].closed
            await gen.aclose()
            return first

        assert anyio.run(_run) == video_bytes(100)
        assert opened[0].closed


class TestProbeMedia:
    def test_unopenable_file_is_io_failure(self, tmp_path, monkeypatch):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(10))

        def refusing_open(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "open", refusing_open)
        with pytest.raises(IOFailure):
            probe_media(path, "v1")

    def test_returns_size_on_disk(self, tmp_path):
        path = tmp_path / "v.mp4"
        path.write_bytes(video_bytes(1234))
        assert probe_media(path) == 1234

    def test_missing_file(self, tmp_path):
        with pytest.raises(MediaNotFound):
            probe_media(tmp_path / "missing.mp4", "v1")

    def test_directory_is_not_media(self, tmp_path):
        with pytest.raises(MediaNotFound):
            probe_media(tmp_path)
