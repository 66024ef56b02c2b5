"""
HTTP partial content for <video> playback: single byte range only, the form
browsers send while seeking and buffering.

Range handling is strict: `bytes=<start>-[<end>]` with start required and
0 <= start <= end < total. Anything else (suffix ranges, multiple ranges,
end past EOF, junk) is answered with 416 and `Content-Range: bytes */<total>`.
The file is read in bounded chunks from a handle owned by the request, so
memory use does not grow with video length.
"""
import logging
import re
import stat
from dataclasses import dataclass
from pathlib import Path

import anyio
import anyio.to_thread
from fastapi.responses import StreamingResponse

from lessonvault.errors import IOFailure, MediaNotFound, RangeUnsatisfiable

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB

# Offsets are capped at 20 digits; longer ones cannot address a real file.
_RANGE_RE = re.compile(r"^bytes=(\d{1,20})-(\d{0,20})$", re.IGNORECASE)

# Played inline, kept out of shared caches.
BASE_HEADERS = {
    "Accept-Ranges": "bytes",
    "Content-Disposition": "inline",
    "Cache-Control": "private, max-age=3600",
    "X-Content-Type-Options": "nosniff",
}


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive
    total: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total}"


def parse_range_header(range_header: str | None, total_length: int, *, video_id: str | None = None) -> ByteRange | None:
    """None when there is no Range header; raises RangeUnsatisfiable when it cannot be served."""
    if range_header is None:
        return None
    m = _RANGE_RE.match(range_header.strip())
    if not m:
        raise RangeUnsatisfiable(f"unparsable range {range_header!r}", total_length=total_length, video_id=video_id)
    start_s, end_s = m.groups()
    start = int(start_s)
    end = int(end_s) if end_s else total_length - 1
    if start >= total_length:
        raise RangeUnsatisfiable(f"range start {start} beyond length {total_length}", total_length=total_length, video_id=video_id)
    if start > end:
        raise RangeUnsatisfiable(f"range start {start} after end {end}", total_length=total_length, video_id=video_id)
    if end >= total_length:
        raise RangeUnsatisfiable(f"range end {end} beyond length {total_length}", total_length=total_length, video_id=video_id)
    return ByteRange(start=start, end=end, total=total_length)


def probe_media(path: Path, video_id: str | None = None) -> int:
    """
    Check the file exists and can be opened, before any byte is sent.
    Returns its size on disk. Missing → MediaNotFound; unreadable → IOFailure.
    """
    try:
        st = path.stat()
        if not stat.S_ISREG(st.st_mode):
            raise MediaNotFound(f"{path} is not a regular file", video_id=video_id)
        with path.open("rb"):
            pass
    except FileNotFoundError:
        raise MediaNotFound(f"{path} does not exist", video_id=video_id) from None
    except OSError as e:
        raise IOFailure(f"cannot open {path}: {e}", video_id=video_id) from e
    return st.st_size


class RangeStreamer:
    """Builds the 200/206 response for one request. Holds no per-request state."""

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self._chunk_size = max(1, chunk_size)

    def stream(
        self,
        path: Path,
        total_length: int,
        range_header: str | None,
        content_type: str,
        *,
        video_id: str | None = None,
    ) -> StreamingResponse:
        byte_range = parse_range_header(range_header, total_length, video_id=video_id)

        if byte_range is None:
            headers = {**BASE_HEADERS, "Content-Length": str(total_length)}
            return StreamingResponse(
                self.iter_window(path, 0, total_length, video_id=video_id),
                status_code=200,
                media_type=content_type,
                headers=headers,
            )

        headers = {
            **BASE_HEADERS,
            "Content-Range": byte_range.content_range(),
            "Content-Length": str(byte_range.length),
        }
        return StreamingResponse(
            self.iter_window(path, byte_range.start, byte_range.length, video_id=video_id),
            status_code=206,
            media_type=content_type,
            headers=headers,
        )

    async def iter_window(self, path: Path, start: int, length: int, *, video_id: str | None = None):
        """
        Yield exactly `length` bytes starting at `start`. Reads run in a worker
        thread; the handle is closed however the loop ends (done, error, or the
        client going away).
        """
        sent = 0
        try:
            f = open(path, "rb")
        except OSError as e:
            logger.error("Cannot open video %s at %s: %s", video_id, path, e)
            raise IOFailure(str(e), video_id=video_id) from e
        try:
            f.seek(start)
            remaining = length
            while remaining > 0:
                data = await anyio.to_thread.run_sync(f.read, min(self._chunk_size, remaining))
                if not data:
                    raise IOFailure(
                        f"{path} ended after {sent} of {length} bytes (offset {start})",
                        video_id=video_id,
                    )
                remaining -= len(data)
                sent += len(data)
                yield data
        except (anyio.get_cancelled_exc_class(), GeneratorExit):
            logger.debug(
                "Client went away from video %s after %s/%s bytes (offset %s)", video_id, sent, length, start
            )
            raise
        except IOFailure as e:
            logger.error("Stream of video %s aborted at bytes %s-%s: %s", video_id, start, start + length - 1, e.reason)
            raise
        except OSError as e:
            logger.error(
                "Read error on video %s, bytes %s-%s after %s bytes: %s",
                video_id, start, start + length - 1, sent, e,
            )
            raise IOFailure(str(e), video_id=video_id) from e
        finally:
            f.close()
