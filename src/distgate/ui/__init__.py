"""Console output and command-line entry for distgate."""

from distgate.ui.render import ConsoleReporter, ReportStyle, create_reporter

__all__ = ["ConsoleReporter", "ReportStyle", "create_reporter"]
