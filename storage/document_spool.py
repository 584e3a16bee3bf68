"""Temporary on-disk spool for generated calendar files."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from processor.exceptions import DeliveryError
from processor.models import CalendarDocument

logger = logging.getLogger(__name__)


class DocumentSpool:
    """Spool writing generated documents to disk until they are delivered."""

    def __init__(self, directory: Optional[str] = None):
        """
        Initialize the spool.

        Args:
            directory: Directory for spooled files (default: system temp dir)
        """
        self.directory = Path(directory or tempfile.gettempdir())

    def write(self, document: CalendarDocument) -> Path:
        """
        Write a document to a file unique to this call.

        Args:
            document: Calendar document to spool

        Returns:
            Path of the spooled file

        Raises:
            DeliveryError: If the file cannot be written
        """
        name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix='talk-', suffix='.ics', dir=self.directory
            )
            with os.fdopen(fd, 'wb') as handle:
                handle.write(document.encode())
        except OSError as e:
            logger.error(f"Error while writing {document.filename} to spool: {e}")
            if name is not None:
                self.discard(Path(name))
            raise DeliveryError(f"Error while generating iCal file: {e}") from e

        logger.debug(f"Spooled {document.filename} to {name}")
        return Path(name)

    def read(self, path: Path) -> bytes:
        """
        Read a spooled document back for delivery.

        Raises:
            DeliveryError: If the file cannot be read
        """
        try:
            return Path(path).read_bytes()
        except OSError as e:
            logger.error(f"Error while reading spooled file {path}: {e}")
            raise DeliveryError(f"Error while sending the file: {e}") from e

    def discard(self, path: Path) -> bool:
        """
        Delete a spooled file after delivery.

        Failures are logged and reported through the return value only.

        Returns:
            True if the file was removed, False otherwise
        """
        try:
            Path(path).unlink()
        except OSError as e:
            logger.error(f"Error deleting the temporary iCal file {path}: {e}")
            return False

        logger.debug(f"Removed spooled file {path}")
        return True
