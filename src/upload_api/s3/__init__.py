"""
S3 storage layer for the Upload API.

One boto3 client per process (`client`), a bucket/object capability on top of
it (`bucket`), a streaming object writer (`write_objects`) and attribute reads
(`read_objects`).
"""
