"""
Collects per-item anomalies corrected during an import.
"""

import logging
from typing import List, Optional, Tuple


logger = logging.getLogger(__name__)


class ImportReport:
    """
    Warning sink shared by the import stages.

    Every message is logged at warning level and kept, so the finished
    ModelData can carry them in `import_warnings`.
    """

    def __init__(self, source: Optional[str] = None):
        self.source = source
        self._warnings: List[str] = []

    def warn(self, message: str, log: Optional[logging.Logger] = None) -> None:
        """Record `message` and log it through `log` (this module's logger by default)."""
        self._warnings.append(message)
        (log or logger).warning(message)

    @property
    def warnings(self) -> Tuple[str, ...]:
        return tuple(self._warnings)

    def __len__(self) -> int:
        return len(self._warnings)

    def __repr__(self) -> str:
        return f"ImportReport(source={self.source!r}, warnings={len(self._warnings)})"
