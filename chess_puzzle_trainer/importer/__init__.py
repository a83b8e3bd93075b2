"""
Bulk import of large puzzle dumps.
"""

from .bulk import BulkImporter, DumpAnalysis, ImportReport
from .streams import iter_rows, open_dump

__all__ = [
    "BulkImporter",
    "DumpAnalysis",
    "ImportReport",
    "iter_rows",
    "open_dump",
]
