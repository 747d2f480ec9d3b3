"""
Output handling for the face scan pipeline.

Responsibility:
    Route a finished ScanReport to the configured sinks: console summary,
    JSON and CSV files. Also owns the optional preview window used while
    the run is in progress.

Non-goals:
    - No detection logic.
    - No scanning.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Set

from facescan.aggregator import ScanReport
from facescan.config import AppConfig, get_project_root
from facescan.serializer import save_csv, save_json
from facescan.visualizer import DisplaySink, OpenCvDisplaySink

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes a scan report to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'summary': Print summary lines to the console.
        - 'preview': Show per-batch mosaics in an OpenCV window during the run.
        - 'save_json': Write detections.json.
        - 'save_csv': Write detections.csv.

    Usage:
        handler = OutputHandler(config)
        pipeline = ScanPipeline(config, display_sink=handler.display_sink)
        handler.write(pipeline.run(roots))
        handler.finalize()
    """

    def __init__(self, config: AppConfig, echo: Callable[[str], None] = print) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode and path).
            echo: Callable receiving each summary line.
        """
        self._config = config
        self._echo = echo
        self._modes: Set[str] = config.output.modes

        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & {"save_json", "save_csv"}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        self._display_sink: Optional[OpenCvDisplaySink] = (
            OpenCvDisplaySink() if "preview" in self._modes else None
        )

        logger.debug("OutputHandler initialized: modes=%s, save_path=%s",
                     self._modes, self._save_path)

    @property
    def display_sink(self) -> Optional[DisplaySink]:
        """Sink for batch previews, or None when preview is off."""
        return self._display_sink

    @property
    def save_path(self) -> Path:
        return self._save_path

    def write(self, report: ScanReport) -> None:
        """Send a finished report to every active output."""
        if "summary" in self._modes:
            for line in report.summary_lines():
                self._echo(line)

        if "save_json" in self._modes:
            save_json(report, str(self._save_path / "detections.json"))

        if "save_csv" in self._modes:
            save_csv(report, str(self._save_path / "detections.csv"))

    def finalize(self) -> None:
        """Release display resources."""
        if self._display_sink is not None:
            self._display_sink.close()
            self._display_sink = None
        logger.debug("OutputHandler finalized.")
