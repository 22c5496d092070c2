"""GatongPass - school-to-parent correspondence core.

This package provides roster ingestion from a published spreadsheet,
guardian identity verification, submission analytics, and audience
targeting for notices and action forms.
"""

__version__ = "0.1.0"
__author__ = "GatongPass Team"

__all__ = [
    "__version__",
    "__author__",
]
