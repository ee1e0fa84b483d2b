import pytest
from botocore.exceptions import ClientError

from upload_api.s3.write_objects import ObjectWriter
from tests.consts import MIB, TEST_BUCKET_NAME

PART_SIZE = 5 * MIB


def _write_in_chunks(writer: ObjectWriter, data: bytes, chunk_size: int = MIB) -> None:
    for start in range(0, len(data), chunk_size):
        writer.write(data[start:start + chunk_size])


def test_small_object_uses_single_put(mocked_aws):
    writer = ObjectWriter(TEST_BUCKET_NAME, "small.txt", mocked_aws, content_type="text/plain", part_size=PART_SIZE)

    writer.write(b"hello, ")
    writer.write(b"world")
    writer.close()

    assert writer.upload_id is None
    obj = mocked_aws.get_object(Bucket=TEST_BUCKET_NAME, Key="small.txt")
    assert obj["Body"].read() == b"hello, world"
    assert obj["ContentType"] == "text/plain"


def test_empty_object(mocked_aws):
    writer = ObjectWriter(TEST_BUCKET_NAME, "empty.bin", mocked_aws, part_size=PART_SIZE)

    writer.close()

    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="empty.bin")
    assert head["ContentLength"] == 0
    assert head["ContentType"] == "application/octet-stream"


def test_large_object_uses_multipart_upload(mocked_aws):
    data = bytes(range(256)) * (11 * MIB // 256) + b"end"
    writer = ObjectWriter(TEST_BUCKET_NAME, "large.bin", mocked_aws, part_size=PART_SIZE)

    _write_in_chunks(writer, data)
    assert writer.upload_id is not None
    # nothing is visible before close
    assert mocked_aws.list_objects_v2(Bucket=TEST_BUCKET_NAME).get("KeyCount") == 0

    writer.close()

    assert writer.bytes_written == len(data)
    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="large.bin")
    assert head["ContentLength"] == len(data)
    assert head["ETag"].endswith('-3"')
    assert mocked_aws.get_object(Bucket=TEST_BUCKET_NAME, Key="large.bin")["Body"].read() == data


def test_exact_multiple_of_part_size(mocked_aws):
    data = b"a" * (2 * PART_SIZE)
    writer = ObjectWriter(TEST_BUCKET_NAME, "exact.bin", mocked_aws, part_size=PART_SIZE)

    _write_in_chunks(writer, data)
    writer.close()

    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="exact.bin")
    assert head["ContentLength"] == len(data)
    assert head["ETag"].endswith('-2"')


def test_abort_discards_pending_upload(mocked_aws):
    writer = ObjectWriter(TEST_BUCKET_NAME, "aborted.bin", mocked_aws, part_size=PART_SIZE)
    _write_in_chunks(writer, b"b" * (6 * MIB))
    assert writer.upload_id is not None

    writer.abort()

    assert writer.closed
    assert mocked_aws.list_multipart_uploads(Bucket=TEST_BUCKET_NAME).get("Uploads", []) == []
    with pytest.raises(ClientError):
        mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="aborted.bin")


def test_abort_keeps_existing_object(mocked_aws):
    mocked_aws.put_object(Bucket=TEST_BUCKET_NAME, Key="keep.bin", Body=b"previous")
    writer = ObjectWriter(TEST_BUCKET_NAME, "keep.bin", mocked_aws, part_size=PART_SIZE)
    _write_in_chunks(writer, b"c" * (6 * MIB))

    writer.abort()

    assert mocked_aws.get_object(Bucket=TEST_BUCKET_NAME, Key="keep.bin")["Body"].read() == b"previous"


def test_abort_without_multipart_upload_is_a_noop(mocked_aws):
    writer = ObjectWriter(TEST_BUCKET_NAME, "tiny.bin", mocked_aws, part_size=PART_SIZE)
    writer.write(b"tiny")

    writer.abort()

    assert mocked_aws.list_objects_v2(Bucket=TEST_BUCKET_NAME).get("KeyCount") == 0


def test_write_after_close(mocked_aws):
    writer = ObjectWriter(TEST_BUCKET_NAME, "closed.txt", mocked_aws, part_size=PART_SIZE)
    writer.close()

    with pytest.raises(ValueError):
        writer.write(b"late")


def test_part_size_below_s3_minimum(mocked_aws):
    with pytest.raises(ValueError):
        ObjectWriter(TEST_BUCKET_NAME, "x", mocked_aws, part_size=MIB)


def test_close_into_missing_bucket(mocked_aws):
    writer = ObjectWriter("no-such-bucket", "x.txt", mocked_aws, part_size=PART_SIZE)
    writer.write(b"data")

    with pytest.raises(ClientError):
        writer.close()

    assert not writer.closed
