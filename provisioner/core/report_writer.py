"""
Run report storage.
"""

import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from ..models.run import RunReport


class ReportWriter:
    """Writes run summaries under ``<base_path>/runs/<run_id>/``."""

    def __init__(self, base_path: Path, run_id: Optional[str] = None):
        """
        Initialize report writer.

        Args:
            base_path: Base directory for reports
            run_id: Directory name for this run, a UTC timestamp when None
        """
        self.logger = logging.getLogger(__name__)
        self.base_path = Path(base_path)
        self.run_id = run_id or datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        self.run_dir = self.base_path / "runs" / self.run_id

    def save_report(self, report: RunReport, filename: str = "summary.json") -> Path:
        """
        Save the report as pretty-printed JSON.

        Returns:
            Path to saved file
        """
        self.run_dir.mkdir(parents=True, exist_ok=True)
        json_path = self.run_dir / filename

        data = report.model_dump(mode="json")
        data["summary"] = report.summary()

        with open(json_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        self.logger.info(f"Saved run report to {json_path}")
        return json_path
