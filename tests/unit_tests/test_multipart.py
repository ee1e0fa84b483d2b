import pytest

from upload_api.multipart import MultipartFramingError, MultipartReader, PartTooLarge
from tests.fixtures.multipart_body import (
    MULTIPART_CONTENT_TYPE,
    FormPart,
    build_multipart_body,
    build_part,
    chunked,
)

TWO_PARTS = [
    FormPart("name", b"report.pdf"),
    FormPart("myfile", b"%PDF-1.4 body\r\nwith a CRLF inside", filename="upload.bin", content_type="application/pdf"),
]


async def _collect(part) -> bytes:
    return b"".join([chunk async for chunk in part])


@pytest.mark.parametrize("chunk_size", [1, 7, 64 * 1024])
async def test_reads_parts_in_order(chunk_size):
    body = build_multipart_body(TWO_PARTS)
    reader = MultipartReader(chunked(body, chunk_size), MULTIPART_CONTENT_TYPE)

    first = await reader.next_part()
    assert first.name == "name"
    assert first.filename is None
    assert await first.read() == b"report.pdf"

    second = await reader.next_part()
    assert second.name == "myfile"
    assert second.filename == "upload.bin"
    assert second.content_type == "application/pdf"
    assert second.headers["content-disposition"].startswith("form-data")
    assert await _collect(second) == b"%PDF-1.4 body\r\nwith a CRLF inside"

    assert await reader.next_part() is None


async def test_next_part_skips_unread_payload():
    body = build_multipart_body([
        FormPart("skipped", b"x" * 100_000),
        FormPart("wanted", b"value"),
    ])
    reader = MultipartReader(chunked(body, 4096), MULTIPART_CONTENT_TYPE)

    skipped = await reader.next_part()
    assert skipped.name == "skipped"

    wanted = await reader.next_part()
    assert skipped.done
    assert wanted.name == "wanted"
    assert await wanted.read() == b"value"


async def test_pulls_body_lazily():
    pulled = []

    async def body():
        for chunk in [build_part(FormPart("name", b"a")), build_part(FormPart("myfile", b"b", filename="b")), b"--"]:
            pulled.append(chunk)
            yield chunk

    reader = MultipartReader(body(), MULTIPART_CONTENT_TYPE)
    part = await reader.next_part()

    assert part.name == "name"
    assert len(pulled) == 1


async def test_empty_body_has_no_parts():
    reader = MultipartReader(chunked(b"", 1), MULTIPART_CONTENT_TYPE)

    assert await reader.next_part() is None


async def test_missing_boundary():
    with pytest.raises(MultipartFramingError):
        MultipartReader(chunked(b"", 1), "multipart/form-data")


async def test_truncated_body():
    body = build_part(FormPart("myfile", b"x" * 5000, filename="f.bin"))[:-2]
    reader = MultipartReader(chunked(body, 1024), MULTIPART_CONTENT_TYPE)
    part = await reader.next_part()

    with pytest.raises(MultipartFramingError):
        await _collect(part)


async def test_garbage_body():
    reader = MultipartReader(chunked(b"definitely not multipart", 8), MULTIPART_CONTENT_TYPE)

    with pytest.raises(MultipartFramingError):
        await reader.next_part()


async def test_read_limit():
    body = build_multipart_body([FormPart("name", b"a" * 100)])
    reader = MultipartReader(chunked(body, 16), MULTIPART_CONTENT_TYPE)
    part = await reader.next_part()

    with pytest.raises(PartTooLarge):
        await part.read(limit=10)


async def test_utf8_filename():
    body = build_multipart_body([FormPart("myfile", b"data", filename="résumé.pdf")])
    reader = MultipartReader(chunked(body, 3), MULTIPART_CONTENT_TYPE)

    part = await reader.next_part()

    assert part.filename == "résumé.pdf"
