"""S3 store for files uploaded alongside talk submissions."""
import logging
import re
import time
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from processor.exceptions import DeliveryError
from processor.models import Attachment, UploadedFile

logger = logging.getLogger(__name__)


class AttachmentStore:
    """Manager for uploaded attachment storage in S3."""

    KEY_PREFIX = 'uploads/'
    MAX_NAME_LENGTH = 100

    def __init__(self, bucket_name: str, base_url: str):
        """
        Initialize S3 client and bucket reference.

        Args:
            bucket_name: Name of the S3 bucket holding uploads
            base_url: Public base URL the uploads are served from
        """
        self.bucket_name = bucket_name
        self.base_url = base_url.rstrip('/')
        self.s3 = boto3.client('s3')
        logger.info(f"Initialized AttachmentStore for bucket: {bucket_name}")

    def store(self, upload: UploadedFile, now: Optional[float] = None) -> Optional[Attachment]:
        """
        Upload a file and return a reference to its public location.

        Args:
            upload: File taken from the form submission
            now: Epoch seconds used to prefix the stored name

        Returns:
            Attachment referencing the stored file, or None if the upload
            was empty

        Raises:
            DeliveryError: If the S3 upload fails
        """
        if not upload.content:
            logger.info(f"Skipping empty upload in field '{upload.field_name}'")
            return None

        if now is None:
            now = time.time()

        stored_name = f"{int(now * 1000)}-{self.safe_name(upload.filename)}"
        key = f"{self.KEY_PREFIX}{stored_name}"

        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=upload.content,
                ContentType=upload.content_type or 'application/octet-stream'
            )
        except ClientError as e:
            logger.error(f"Error uploading {key} to {self.bucket_name}: {e}")
            raise DeliveryError(f"Failed to store attachment: {e}") from e

        logger.info(
            f"Stored attachment {key}",
            extra={'bytes': len(upload.content), 'bucket': self.bucket_name}
        )

        return Attachment(
            locator=f"{self.base_url}/{key}",
            filename=upload.filename,
            content_type=upload.content_type
        )

    def safe_name(self, filename: str) -> str:
        """
        Reduce a client supplied filename to a safe object name.

        Args:
            filename: Name as sent by the browser, possibly with a path

        Returns:
            Basename with anything outside [A-Za-z0-9._-] replaced by '_'
        """
        basename = re.split(r'[\\/]', filename or '')[-1]
        cleaned = re.sub(r'[^A-Za-z0-9._-]', '_', basename).strip('.')
        return cleaned[-self.MAX_NAME_LENGTH:] or 'attachment'
