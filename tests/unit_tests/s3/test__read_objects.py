import pytest
from botocore.exceptions import ClientError

from upload_api.s3.bucket import BucketHandle
from upload_api.s3.read_objects import build_media_link, bucket_exists, fetch_object_attributes
from tests.consts import TEST_BUCKET_NAME


def test_fetch_object_attributes(mocked_aws):
    mocked_aws.put_object(Bucket=TEST_BUCKET_NAME, Key="a/b.txt", Body=b"12345", ContentType="text/plain")

    attrs = fetch_object_attributes(TEST_BUCKET_NAME, "a/b.txt", mocked_aws)

    assert attrs.bucket == TEST_BUCKET_NAME
    assert attrs.key == "a/b.txt"
    assert attrs.size_bytes == 5
    assert attrs.content_type == "text/plain"
    assert attrs.etag
    assert attrs.last_modified is not None
    assert attrs.media_link.endswith(f"/{TEST_BUCKET_NAME}/a%2Fb.txt")


def test_fetch_attributes_of_missing_object(mocked_aws):
    with pytest.raises(ClientError):
        fetch_object_attributes(TEST_BUCKET_NAME, "missing.txt", mocked_aws)


def test_media_link_quotes_key(mocked_aws):
    link = build_media_link(mocked_aws, TEST_BUCKET_NAME, "my file#1.txt")

    assert link == f"{mocked_aws.meta.endpoint_url.rstrip('/')}/{TEST_BUCKET_NAME}/my%20file%231.txt"


def test_bucket_exists(mocked_aws):
    assert bucket_exists(TEST_BUCKET_NAME, mocked_aws)
    assert not bucket_exists("no-such-bucket", mocked_aws)


def test_bucket_handle_round_trip(mocked_aws):
    bucket = BucketHandle(TEST_BUCKET_NAME, mocked_aws)
    obj = bucket.object("handle.txt")

    writer = obj.new_writer(content_type="text/plain")
    writer.write(b"via handle")
    writer.close()

    attrs = obj.attrs()
    assert attrs.size_bytes == len(b"via handle")
    assert bucket.exists()
