"""
S3 transfer helper for deposit working areas.

A Deposit exposes its files location as an s3:// URI. The harness writes into
that location directly with boto3; the Preservation API only notices the
files when asked to refresh storage or compute a diff.

Errors from S3 propagate unchanged and nothing here retries: an upload is
not idempotent from the scenario's point of view, so a failure fails the
scenario.
"""

import base64
import hashlib
import mimetypes
import threading
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from preservation_e2e.logging_config import get_logger
from preservation_e2e.utils.formatting import format_size

logger = get_logger(__name__)


class S3Location(NamedTuple):
    bucket: str
    key: str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


def parse_s3_uri(uri: str) -> S3Location:
    """Split s3://bucket/some/prefix into bucket and key (no leading slash)."""
    parsed = urlparse(uri)
    if parsed.scheme != "s3" or not parsed.netloc:
        raise ValueError(f"Not an s3:// URI: {uri!r}")
    return S3Location(parsed.netloc, parsed.path.lstrip("/"))


def join_key(key: str, relative_path: str) -> str:
    """Join a key prefix and a relative path, tolerating stray slashes at the seam."""
    key = key[:-1] if key.endswith("/") else key
    path = relative_path[1:] if relative_path.startswith("/") else relative_path
    if not key:
        return path
    return f"{key}/{path}"


def sha256_digest(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class S3TransferHelper:
    """Upload, copy and list objects in deposit storage."""

    def __init__(
        self,
        profile_name: Optional[str] = "leeds",
        region_name: str = "eu-west-1",
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ):
        self.profile_name = profile_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._client = client
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "S3TransferHelper":
        return cls(
            profile_name=settings.aws_profile,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )

    def _get_client(self):
        """Get or create the S3 client (thread-safe)."""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    config = Config(
                        signature_version='s3v4',
                        retries={'max_attempts': 1, 'mode': 'standard'},
                        max_pool_connections=25
                    )
                    session = boto3.Session(profile_name=self.profile_name, region_name=self.region_name)
                    kwargs = {'config': config}
                    if self.endpoint_url:
                        kwargs['endpoint_url'] = self.endpoint_url
                    self._client = session.client('s3', **kwargs)
        return self._client

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def upload(
        self,
        destination_uri: str,
        local_path: str,
        relative_path: str,
        with_checksum: bool = False,
    ) -> Optional[str]:
        """
        Put a local file at <destination_uri>/<relative_path>.

        With with_checksum the SHA-256 is sent alongside the object so the
        Preservation API can validate it against the METS digest; the hex
        digest is returned. Without it the METS file is expected to carry the
        digest and None is returned.
        """
        location = parse_s3_uri(destination_uri)
        key = join_key(location.key, relative_path)
        content = Path(local_path).read_bytes()

        content_type, _ = mimetypes.guess_type(relative_path)
        params: Dict[str, Any] = {
            'Bucket': location.bucket,
            'Key': key,
            'Body': content,
            'CacheControl': 'no-cache',
            'ContentType': content_type or 'application/octet-stream',
        }

        digest = None
        if with_checksum:
            raw = hashlib.sha256(content).digest()
            digest = raw.hex()
            params['ChecksumAlgorithm'] = 'SHA256'
            params['ChecksumSHA256'] = base64.b64encode(raw).decode('ascii')

        logger.info(
            f"Uploading {local_path} to s3://{location.bucket}/{key} ({format_size(len(content))})",
            extra={"uri": f"s3://{location.bucket}/{key}"},
        )
        self._get_client().put_object(**params)
        return digest

    def upload_directory(
        self,
        destination_uri: str,
        local_dir: str,
        prefix: str = "",
        with_checksum: bool = False,
    ) -> List[str]:
        """Upload every file under local_dir (sorted); returns the relative paths written."""
        root = Path(local_dir)
        uploaded = []
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            relative = path.relative_to(root).as_posix()
            target = join_key(prefix, relative) if prefix else relative
            self.upload(destination_uri, str(path), target, with_checksum)
            uploaded.append(target)
        return uploaded

    def copy(self, copy_source: str, dest_bucket: str, dest_key: str) -> None:
        """Server-side copy; copy_source is '/bucket/key' or 'bucket/key'."""
        logger.debug(f"Copying {copy_source} to s3://{dest_bucket}/{dest_key}")
        self._get_client().copy_object(Bucket=dest_bucket, Key=dest_key, CopySource=copy_source)

    def list_keys(self, prefix_uri: str) -> List[Dict[str, Any]]:
        """All object descriptors (S3 'Contents' entries) under an s3:// prefix."""
        location = parse_s3_uri(prefix_uri)
        paginator = self._get_client().get_paginator('list_objects_v2')
        objects: List[Dict[str, Any]] = []
        for page in paginator.paginate(Bucket=location.bucket, Prefix=location.key):
            objects.extend(page.get('Contents', []))
        logger.debug(f"Listed {len(objects)} object(s) under {prefix_uri}")
        return objects

    def object_exists(self, uri: str, relative_path: str = "") -> bool:
        location = parse_s3_uri(uri)
        key = join_key(location.key, relative_path) if relative_path else location.key
        try:
            self._get_client().head_object(Bucket=location.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    def clone_prefix(self, source_uri: str, destination_uri: str,
                     exclude: Tuple[str, ...] = ("__METSlike.json",)) -> int:
        """
        Copy every object under source_uri to the same relative key under destination_uri.

        Keys containing any of the exclude fragments (service-internal state
        files) and the prefix marker object itself are skipped.
        """
        source = parse_s3_uri(source_uri)
        destination = parse_s3_uri(destination_uri)
        source_prefix = source.key if source.key.endswith("/") or not source.key else source.key + "/"

        copied = 0
        for obj in self.list_keys(source_uri):
            relative = obj['Key'][len(source_prefix):] if obj['Key'].startswith(source_prefix) else obj['Key']
            if not relative or any(fragment in obj["Key"] for fragment in exclude):
                continue
            self.copy(f"/{source.bucket}/{obj['Key']}", destination.bucket, join_key(destination.key, relative))
            copied += 1
        logger.info(f"Cloned {copied} object(s) from {source_uri} to {destination_uri}")
        return copied
