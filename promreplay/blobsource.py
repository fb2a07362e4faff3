"""
Blob Source - resolves an archive location to raw bytes.

Supported locations:
    /path/to/archive.zip        local file
    file:///path/to/archive.zip local file
    http(s)://host/archive.zip  GET, 200 required
    s3://bucket/key.zip         S3 object via an injected boto3 client
"""

import logging
import os
import sys
from pathlib import Path
from urllib.parse import unquote, urlparse

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from promreplay.errors import ConfigurationError, IngestionError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


def make_s3_client(region=None):
    """
    Create the S3 client used for s3:// locations.

    Credentials come from boto3's default chain, which covers environment
    variables and the EC2 instance role.
    """
    region = region or os.getenv("AWS_REGION") or DEFAULT_REGION
    session = boto3.session.Session(region_name=region)
    return session.client("s3")


def scheme_of(location: str) -> str:
    return urlparse(location).scheme.lower()


class BlobSource:
    def __init__(self, s3_client=None, http_timeout: float = 60.0):
        self.s3_client = s3_client
        self.http_timeout = http_timeout

    def fetch(self, location: str) -> bytes:
        """
        Return the raw bytes stored at location.

        Raises:
            IngestionError: if the location cannot be read
            ConfigurationError: if the scheme is not supported
        """
        scheme = scheme_of(location)

        if scheme == "":
            return self._read_file(location)
        if scheme == "file":
            return self._read_file(unquote(urlparse(location).path))
        if scheme in ("http", "https"):
            return self._fetch_http(location)
        if scheme == "s3":
            return self._fetch_s3(location)

        raise ConfigurationError(f"unsupported scheme: {scheme!r}")

    def _read_file(self, path: str) -> bytes:
        if path == "-":
            if sys.stdin.isatty():
                raise IngestionError("no data being piped")
            return sys.stdin.buffer.read()
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise IngestionError(f"error opening {path}: {e}") from e

    def _fetch_http(self, url: str) -> bytes:
        logger.debug("# downloading %s ...", url)
        try:
            resp = requests.get(url, timeout=self.http_timeout)
        except requests.exceptions.RequestException as e:
            raise IngestionError(f"error retrieving {url}: {e}") from e

        if resp.status_code != 200:
            raise IngestionError(f"error retrieving {url}: {resp.status_code} {resp.reason}")

        return resp.content

    def _fetch_s3(self, location: str) -> bytes:
        if self.s3_client is None:
            raise ConfigurationError(f"no S3 client configured for {location}")

        u = urlparse(location)
        bucket, key = u.netloc, u.path.lstrip("/")
        if not bucket or not key:
            raise ConfigurationError(f"invalid S3 location: {location}")

        logger.debug("# downloading s3://%s/%s ...", bucket, key)
        try:
            obj = self.s3_client.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise IngestionError(f"error downloading from S3: {e}") from e
