"""Read-only aggregation facade over the Hacker News best stories API."""

__version__ = "1.0.0"
