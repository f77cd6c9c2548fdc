"""CSV reports, property tabulation, a local JSON web API and a command-line runner."""

__version__ = "0.1.0"
__all__ = ["report", "tabulator", "web_api", "runner"]