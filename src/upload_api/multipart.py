"""Pull-style multipart/form-data reader over an async byte stream.

`python-multipart` is a push parser: it is fed bytes and fires callbacks.
:class:`MultipartReader` turns those callbacks into a queue of events and only
pulls the next chunk from the request body once every event produced by the
previous chunk has been consumed. A slow consumer therefore slows down reads
from the client, and at most one network chunk is held in memory at a time.

Usage::

    reader = MultipartReader(request.stream(), request.headers["content-type"])
    part = await reader.next_part()
    async for chunk in part:
        ...
"""

import logging
from collections import deque
from typing import AsyncIterator, Deque, Dict, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

logger = logging.getLogger(__name__)

# Upper bound for a single part header line
MAX_HEADER_BYTES = 16 * 1024

_HEADERS = "headers"
_DATA = "data"
_PART_END = "part_end"


class MultipartFramingError(Exception):
    """The body is not a well-formed multipart stream."""


class PartTooLarge(Exception):
    """A part exceeded the size it was allowed to be buffered at."""


def _user_safe_decode(src: bytes) -> str:
    try:
        return src.decode("utf-8")
    except UnicodeDecodeError:
        return src.decode("latin-1")


class Part:
    """One section of a multipart body.

    The payload is exposed as an async iterator of byte chunks. A part can be
    consumed only once, and only while it is the reader's current part.
    """

    def __init__(self, reader: "MultipartReader", raw_headers: List[Tuple[bytes, bytes]]):
        self._reader = reader
        self._done = False
        self.headers: Dict[str, str] = {
            field.decode("latin-1").lower(): _user_safe_decode(value)
            for field, value in raw_headers
        }

        disposition = b""
        for field, value in raw_headers:
            if field.lower() == b"content-disposition":
                disposition = value
        _, options = parse_options_header(disposition)

        self.name: str = _user_safe_decode(options.get(b"name", b""))
        filename = options.get(b"filename")
        self.filename: Optional[str] = _user_safe_decode(filename) if filename is not None else None
        self.content_type: Optional[str] = self.headers.get("content-type")

    @property
    def done(self) -> bool:
        return self._done

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._reader._next_data(self)
            if chunk is None:
                return
            yield chunk

    async def read(self, limit: Optional[int] = None) -> bytes:
        """Drain the rest of the part into memory.

        Args:
            limit: Maximum number of bytes to accept.

        Raises:
            PartTooLarge: If the payload is longer than `limit`.
        """
        buffer = bytearray()
        async for chunk in self:
            buffer += chunk
            if limit is not None and len(buffer) > limit:
                raise PartTooLarge(f"part {self.name!r} is larger than {limit} bytes")
        return bytes(buffer)

    def __repr__(self) -> str:
        return f"Part(name={self.name!r}, filename={self.filename!r})"


class MultipartReader:
    """Sequential reader of the parts of a multipart/form-data body."""

    def __init__(self, body: AsyncIterator[bytes], content_type: str):
        _, params = parse_options_header(content_type)
        boundary = params.get(b"boundary")
        if not boundary:
            raise MultipartFramingError("no multipart boundary param in Content-Type")

        self._body = body.__aiter__()
        self._events: Deque[Tuple[str, object]] = deque()
        self._exhausted = False
        self._in_part = False
        self._current: Optional[Part] = None

        self._header_field = b""
        self._header_value = b""
        self._headers: List[Tuple[bytes, bytes]] = []

        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
        }
        self._parser = MultipartParser(boundary, callbacks)

    # parser callbacks --------------------------------------------------------

    def _on_part_begin(self) -> None:
        self._in_part = True
        self._headers = []

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_DATA, bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._in_part = False
        self._events.append((_PART_END, None))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]
        if len(self._header_field) > MAX_HEADER_BYTES:
            raise MultipartFramingError("part header field too long")

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]
        if len(self._header_value) > MAX_HEADER_BYTES:
            raise MultipartFramingError("part header value too long")

    def _on_header_end(self) -> None:
        self._headers.append((self._header_field, self._header_value))
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        self._events.append((_HEADERS, self._headers))

    # pull side ---------------------------------------------------------------

    async def _fill(self) -> bool:
        """Feed the parser until it has produced an event.

        Returns False once the body is exhausted and no event is pending.
        """
        while not self._events:
            if self._exhausted:
                return False
            try:
                chunk = await self._body.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                self._parser.finalize()
                if self._in_part:
                    raise MultipartFramingError("unexpected end of multipart body")
                continue
            if not chunk:
                continue
            try:
                self._parser.write(chunk)
            except MultipartParseError as err:
                raise MultipartFramingError(str(err)) from err
        return True

    async def _next_data(self, part: Part) -> Optional[bytes]:
        if part.done or part is not self._current:
            return None
        if not await self._fill():
            raise MultipartFramingError("unexpected end of multipart body")

        kind, value = self._events.popleft()
        if kind == _DATA:
            return value
        if kind == _PART_END:
            part._done = True
            return None
        raise MultipartFramingError(f"unexpected {kind} event inside part {part.name!r}")

    async def next_part(self) -> Optional[Part]:
        """Advance to the next part.

        Whatever is left of the current part is read and discarded first.

        Returns:
            The next part, or None when the body has no more parts.
        """
        if self._current is not None and not self._current.done:
            async for _ in self._current:
                pass
        self._current = None

        if not await self._fill():
            return None
        kind, value = self._events.popleft()
        if kind != _HEADERS:
            raise MultipartFramingError(f"unexpected {kind} event between parts")

        self._current = Part(self, value)
        logger.debug(f"multipart part started: {self._current!r}")
        return self._current
