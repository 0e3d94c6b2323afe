import time
import zipfile
from dataclasses import dataclass
from typing import BinaryIO, Iterator

# zip timestamps cannot predate 1980, one day of margin for any timezone
MIN_ZIP_TIMESTAMP = 315619200


@dataclass
class ArchiveResource:
    resource: BinaryIO
    internal_name: str
    size: int
    time: int = -1


class _ChunkSink:
    """Write-only target collecting what zipfile emits until drained.

    It has no ``tell``/``seek`` so zipfile writes entries with data
    descriptors instead of rewriting local headers.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ZipStreamer:
    """Streams several open files into one zip archive.

    Parameters
    ----------
    chunk_size : int, optional
        Number of bytes read from a resource at a time, by default 64 KiB
    """

    def __init__(self, chunk_size: int = 64 * 1024) -> None:
        self.chunk_size: int = chunk_size
        self.resources: list[ArchiveResource] = []

    def add_resource(self, resource: BinaryIO, internal_name: str, size: int, time: int = -1) -> None:
        # anything that cannot be read from is skipped
        if not callable(getattr(resource, "read", None)):
            return
        self.resources.append(
            ArchiveResource(resource=resource, internal_name=internal_name, size=size, time=time)
        )

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the archive bytes; entries are stored uncompressed."""
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_STORED) as archive:  # type: ignore[arg-type]
            for entry in self.resources:
                info = zipfile.ZipInfo(
                    filename=entry.internal_name,
                    date_time=_zip_date_time(entry.time),
                )
                info.file_size = entry.size
                with archive.open(info, mode="w") as dest:
                    while True:
                        block: bytes = entry.resource.read(self.chunk_size)
                        if not block:
                            break
                        dest.write(block)
                        chunk = sink.drain()
                        if chunk:
                            yield chunk
                chunk = sink.drain()
                if chunk:
                    yield chunk
        chunk = sink.drain()
        if chunk:
            yield chunk


def _zip_date_time(timestamp: int) -> tuple[int, int, int, int, int, int]:
    if timestamp < 0:
        timestamp = int(time.time())
    timestamp = max(timestamp, MIN_ZIP_TIMESTAMP)
    return time.localtime(timestamp)[:6]
