import os
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from flask import current_app

from app.errors import UploadError

ALLOWED_EXTENSIONS = {"pdf", "doc", "docx", "png", "jpg", "jpeg", "webp"}


def _client():
    return boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=current_app.config.get("S3_REGION") or os.getenv("AWS_REGION"),
    )


def file_extension(filename, default="bin"):
    if not filename or "." not in filename:
        return default
    return filename.rsplit(".", 1)[1].lower()


def build_key(prefix, owner_id, suffix, filename):
    """``cvs/42-cv.pdf``: keyed by the owning row id, never by a timestamp."""
    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise UploadError(f"File type .{ext} is not allowed")
    return f"{prefix}/{owner_id}-{suffix}.{ext}"


def public_url(bucket_name, key):
    base_url = current_app.config.get("S3_BASE_URL")
    if base_url:
        return f"{base_url.rstrip('/')}/{bucket_name}/{key}"
    region = current_app.config.get("S3_REGION")
    return f"https://{bucket_name}.s3.{region}.amazonaws.com/{key}"


def upload_file_to_s3(file, key, bucket_name):
    s3 = _client()
    content_type = getattr(file, "mimetype", None) or "application/octet-stream"
    try:
        s3.upload_fileobj(
            file,
            bucket_name,
            key,
            ExtraArgs={"ACL": "public-read", "ContentType": content_type},
        )
    except NoCredentialsError:
        raise UploadError("AWS credentials not found. Check environment variables.")
    except (BotoCoreError, ClientError) as e:
        current_app.logger.error(f"Upload of {key} to {bucket_name} failed: {e}")
        raise UploadError(f"Failed to upload file: {e}")

    return public_url(bucket_name, key)


def delete_file_from_s3(url_or_key, bucket_name):
    """Best effort; returns False instead of raising so callers can keep unwinding."""
    key = url_or_key
    if url_or_key.startswith("http"):
        path = urlparse(url_or_key).path.lstrip("/")
        if path.startswith(f"{bucket_name}/"):
            path = path[len(bucket_name) + 1:]
        key = path

    try:
        _client().delete_object(Bucket=bucket_name, Key=key)
        return True
    except (NoCredentialsError, BotoCoreError, ClientError) as e:
        current_app.logger.warning(f"Error deleting {key} from {bucket_name}: {e}")
        return False
