"""Staging of input artifacts for the compute program."""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Iterable
from compute_relay.core.exceptions import UnsupportedInputError

logger = logging.getLogger(__name__)


class FileStore:
    """Stores submitted input files where the compute program reads them."""

    def __init__(
        self,
        input_dir: str,
        allowed_extensions: Iterable[str] = (".json", ".csv", ".dat"),
    ):
        """
        Initialize file store.

        Args:
            input_dir: Directory the compute program reads inputs from
            allowed_extensions: Accepted input file extensions
        """
        self.input_dir = Path(input_dir)
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)

    def input_path(self, input_name: str) -> Path:
        return self.input_dir / input_name

    async def save_input(self, original_name: str, content: bytes) -> str:
        """
        Stage an uploaded input file under a generated name.

        Args:
            original_name: File name as submitted (only its extension is kept)
            content: File bytes

        Returns:
            str: Staged file name, ``<uuid hex><ext>``

        Raises:
            UnsupportedInputError: If the extension is not allowed
        """
        extension = Path(original_name).suffix.lower()
        if extension not in self.allowed_extensions:
            raise UnsupportedInputError(
                f"Unsupported file type '{extension or original_name}'. "
                f"Allowed: {', '.join(self.allowed_extensions)}"
            )

        input_name = f"{uuid.uuid4().hex}{extension}"
        path = self.input_path(input_name)

        def write_sync() -> None:
            self.input_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(write_sync)
        logger.info(f"Staged input {original_name} as {input_name}")
        return input_name

    async def wait_for_input(
        self, input_name: str, attempts: int = 5, delay_seconds: float = 0.1
    ) -> bool:
        """
        Poll until the input artifact exists.

        Args:
            input_name: Staged input file name
            attempts: Number of delayed re-checks
            delay_seconds: Delay between checks

        Returns:
            bool: True if the file exists within the budget
        """
        path = self.input_path(input_name)
        attempt = 0
        while not path.exists() and attempt < attempts:
            logger.info(
                f"Input file not found yet: {path}, retrying... ({attempt + 1}/{attempts})"
            )
            await asyncio.sleep(delay_seconds)
            attempt += 1
        return path.exists()
