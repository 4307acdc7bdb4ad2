"""
iModel report exporter.

Runs named queries against an iModel snapshot and writes the results, optionally
enriched with element mass properties, to semicolon-delimited files.
"""

__version__ = "0.3.0"
