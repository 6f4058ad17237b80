"""Discovery of the newest result artifact produced for a job."""
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

TIMESTAMP_PATTERN = re.compile(r"(\d{8}_\d{6})")
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class ResultLocator:
    """
    Finds the result artifact the compute program wrote for an input.

    Results live in ``<output_root>/<input stem>/`` and are named
    ``<prefix>_<YYYYMMDD_HHMMSS><ext>``. A missing or empty directory means
    the result has not been produced (yet), which is not an error.
    """

    def __init__(
        self,
        output_root: str,
        prefix: str = "result",
        extensions: Iterable[str] = (".json",),
    ):
        """
        Initialize result locator.

        Args:
            output_root: Root directory the compute program writes under
            prefix: Expected result file name prefix
            extensions: Expected result file extensions
        """
        self.output_root = Path(output_root)
        self.prefix = prefix
        self.extensions = tuple(ext.lower() for ext in extensions)

    def result_dir(self, input_name: str) -> Path:
        """Directory holding results for an input artifact."""
        return self.output_root / Path(input_name).stem

    def locate(self, input_name: str) -> Optional[Path]:
        """
        Pick the newest result file for an input artifact.

        Args:
            input_name: Staged input file name

        Returns:
            Optional[Path]: Newest result file, or None if nothing was produced
        """
        directory = self.result_dir(input_name)
        if not directory.is_dir():
            return None

        files = [path for path in directory.iterdir() if path.is_file()]
        if not files:
            return None

        candidates = [path for path in files if self._matches_convention(path)] or files

        stamped = []
        for path in candidates:
            stamp = parse_timestamp(path.name)
            if stamp is not None:
                stamped.append((stamp, path))
        if stamped:
            return max(stamped, key=lambda item: item[0])[1]

        return max(candidates, key=lambda path: path.stat().st_mtime)

    def _matches_convention(self, path: Path) -> bool:
        return (
            path.name.startswith(f"{self.prefix}_")
            and path.suffix.lower() in self.extensions
        )


def parse_timestamp(file_name: str) -> Optional[datetime]:
    """
    Extract the ``YYYYMMDD_HHMMSS`` stamp embedded in a file name.

    Args:
        file_name: File name to inspect

    Returns:
        Optional[datetime]: Parsed timestamp, or None if absent or invalid
    """
    for match in TIMESTAMP_PATTERN.finditer(file_name):
        try:
            return datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
        except ValueError:
            continue
    return None
