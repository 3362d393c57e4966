"""Summary output for backup runs."""

import json
import logging
from collections import Counter
from typing import List

from ..core.models import BackupResult, BackupStatus
from ..utils.formatters import format_file_size


class SummaryReporter:
    """Renders per-entry backup results as text or JSON."""

    def __init__(self, results: List[BackupResult]):
        self.results = results
        self.logger = logging.getLogger(__name__)

    def format_line(self, result: BackupResult) -> str:
        """One status line: ``name: status (reason) - error``."""
        line = f"{result.name}: {result.status.value}"
        if result.reason:
            line += f" ({result.reason})"
        if result.error:
            line += f" - {result.error}"
        return line

    def generate_text_report(self, verbose: bool = False) -> str:
        """Generate the plain-text summary.

        Args:
            verbose: Also show latest/archived paths and sizes.

        Returns:
            Summary text, one line per entry followed by totals.
        """
        lines = ["Summary:"]
        for result in self.results:
            lines.append(f"  {self.format_line(result)}")
            if verbose and result.latest_path:
                size = format_file_size(result.size) if result.size is not None else '?'
                lines.append(f"      latest:   {result.latest_path} ({size})")
            if verbose and result.archived_path:
                lines.append(f"      archived: {result.archived_path}")

        counts = self.status_counts()
        totals = ", ".join(f"{counts[status.value]} {status.value}" for status in BackupStatus)
        lines.append(f"Total: {len(self.results)} entries ({totals})")
        return "\n".join(lines)

    def generate_json_report(self) -> str:
        """Generate the summary as a JSON document."""
        return json.dumps({
            'results': [result.to_dict() for result in self.results],
            'counts': dict(self.status_counts()),
        }, indent=2)

    def log_summary(self) -> None:
        """Write the summary lines to the log."""
        self.logger.info("Summary:")
        for result in self.results:
            self.logger.info(f"  {self.format_line(result)}")

    def status_counts(self) -> Counter:
        return Counter(result.status.value for result in self.results)

    @property
    def has_errors(self) -> bool:
        return any(result.status == BackupStatus.ERROR for result in self.results)
