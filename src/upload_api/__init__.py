"""Upload API: stream multipart uploads straight into an S3 bucket."""
