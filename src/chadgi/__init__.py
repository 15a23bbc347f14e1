"""ChadGI: autonomous issue-to-PR agent driver."""

__version__ = "0.1.0"
