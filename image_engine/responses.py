import asyncio
from io import BytesIO
from typing import BinaryIO

from aiohttp import web

from .archive import ZipStreamer
from .image_processor import ImageProcessor


def image_response(processor: ImageProcessor, mime_type: str | None = None) -> web.Response:
    """Build a response carrying the processor's image.

    Raises
    ------
    UnsupportedFormatError
        If ``mime_type`` has no encoder
    """
    if not processor.valid():
        return web.Response(status=404, text="No image loaded")

    body = BytesIO()
    if not processor.show(mime_type=mime_type, stream=body):
        return web.Response(status=500, text="Could not encode image")
    return web.Response(body=body.getvalue(), content_type=processor.output_mime_type(mime_type))


class ZipResponse:
    """Sends several files in one zip archive.

    Parameters
    ----------
    request : web.Request
        Request being answered
    name : str, optional
        Archive name without extension, by default "output"
    chunk_size : int, optional
        Bytes read from each resource at a time, by default 64 KiB
    """

    def __init__(self, request: web.Request, name: str = "output", chunk_size: int = 64 * 1024) -> None:
        self.request = request
        self.name = name
        self.streamer = ZipStreamer(chunk_size=chunk_size)

    def add_resource(self, resource: BinaryIO, internal_name: str, size: int, time: int = -1) -> None:
        self.streamer.add_resource(resource, internal_name=internal_name, size=size, time=time)

    async def callback(self) -> web.StreamResponse:
        response = web.StreamResponse(
            headers={
                "Content-Type": "application/zip",
                "Content-Disposition": f'attachment; filename="{self.name}.zip"',
            }
        )
        await response.prepare(self.request)
        # resource reads run in the default executor, off the event loop
        loop = asyncio.get_running_loop()
        chunks = self.streamer.iter_chunks()
        while True:
            chunk = await loop.run_in_executor(None, next, chunks, None)
            if chunk is None:
                break
            await response.write(chunk)
        await response.write_eof()
        return response
