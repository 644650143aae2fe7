"""
AWS S3 access for clinic directory snapshots.

The directory export job drops JSON, JSON-lines or Parquet snapshots of the
clinic collection into one S3 folder; the app loads the newest one.

Usage:
    from clinic_finder.utils.s3_client import S3DataClient

    client = S3DataClient()
    if client.is_configured():
        latest = client.download_latest_file()
"""

import logging
from datetime import datetime
from io import BytesIO
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

SNAPSHOT_EXTENSIONS = (".json", ".jsonl", ".parquet")


class S3DataClient:
    """Client for reading clinic snapshot files from AWS S3."""

    def __init__(self, folder: Optional[str] = None):
        """Initialize the S3 client with configuration from secrets.

        Args:
            folder: Optional prefix overriding the configured ``s3.clinics_folder``
        """
        from clinic_finder.utils.config import get_api_config, is_api_enabled

        self.config = get_api_config("s3")
        self.enabled = is_api_enabled("s3")
        self._client = None

        folder = folder or self.config.get("clinics_folder") or "clinics"
        self.folder = folder if folder.endswith("/") else folder + "/"

    def is_configured(self) -> bool:
        """Check if S3 is properly configured."""
        return self.enabled

    def _get_client(self):
        """Lazy initialization of boto3 client."""
        if self._client is None and self.enabled:
            try:
                import boto3

                self._client = boto3.client(
                    "s3",
                    aws_access_key_id=self.config["aws_access_key_id"],
                    aws_secret_access_key=self.config["aws_secret_access_key"],
                    region_name=self.config["region_name"],
                )
            except Exception as e:
                logger.error(f"Failed to initialize S3 client: {e}")
                self.enabled = False
        return self._client

    def list_snapshot_files(self) -> List[Tuple[str, datetime]]:
        """
        List snapshot files in the clinics folder, newest first.

        Returns:
            List of tuples (filename, last_modified_datetime)
        """
        client = self._get_client()
        if not client:
            return []

        try:
            paginator = client.get_paginator("list_objects_v2")
            files = []
            for page in paginator.paginate(Bucket=self.config["bucket_name"], Prefix=self.folder):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key == self.folder or not key.lower().endswith(SNAPSHOT_EXTENSIONS):
                        continue
                    files.append((key.split("/")[-1], obj["LastModified"]))

            return sorted(files, key=lambda x: x[1], reverse=True)

        except Exception as e:
            logger.error(f"Failed to list files in S3 folder '{self.folder}': {e}")
            return []

    def download_file(self, filename: str) -> Optional[bytes]:
        """
        Download one snapshot file.

        Returns:
            File bytes or None if download fails
        """
        client = self._get_client()
        if not client:
            return None

        s3_key = f"{self.folder}{filename}"
        try:
            buffer = BytesIO()
            client.download_fileobj(self.config["bucket_name"], s3_key, buffer)
            buffer.seek(0)
            return buffer.getvalue()
        except Exception as e:
            logger.error(f"Failed to download file '{s3_key}' from S3: {e}")
            return None

    def download_latest_file(self) -> Optional[Tuple[bytes, str, datetime]]:
        """
        Download the most recently modified snapshot.

        Returns:
            Tuple of (file_bytes, filename, last_modified) or None if no files found
        """
        files = self.list_snapshot_files()
        if not files:
            logger.warning(f"No clinic snapshots found in S3 folder '{self.folder}'")
            return None

        latest_filename, last_modified = files[0]
        logger.info(f"Downloading latest snapshot '{latest_filename}' from S3 (modified: {last_modified})")

        file_bytes = self.download_file(latest_filename)
        if file_bytes:
            return file_bytes, latest_filename, last_modified
        return None
