from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi.responses import StreamingResponse

CHUNK_SIZE_BYTES = 1024 * 1024


def iter_blob(content: BinaryIO, chunk_size: int = CHUNK_SIZE_BYTES) -> Iterator[bytes]:
    try:
        while True:
            chunk = content.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        content.close()


def blob_response(content: BinaryIO, *, filename: str, mime_type: str, attachment: bool) -> StreamingResponse:
    disposition = "attachment" if attachment else "inline"
    return StreamingResponse(
        iter_blob(content),
        media_type=mime_type,
        headers={"Content-Disposition": f'{disposition}; filename="{quote(filename)}"'},
    )
