from __future__ import annotations

import json
import logging

from rich.console import Console

from ..settings import OutputFormat
from .formatter import format_report_table
from .generator import PortfolioReport

logger = logging.getLogger(__name__)


def publish_report(
    report: PortfolioReport,
    output_format: OutputFormat = OutputFormat.TABLE,
    console: Console | None = None,
) -> None:
    """Publish report to stdout.

    Args:
        report: The portfolio report to publish
        output_format: TABLE for the rich dashboard, JSON for raw JSON
        console: Console used for table output
    """
    logger.debug("Publishing report for pass %d as %s", report.pass_number, output_format.value)
    if output_format == OutputFormat.JSON:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        format_report_table(report, console)
