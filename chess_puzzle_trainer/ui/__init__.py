"""
Console rendering for the puzzle pipeline.
"""

from .report import (
    create_analysis_panel,
    create_errors_panel,
    create_import_panel,
    create_puzzle_table,
    create_stats_table,
    show_analysis,
    show_import_result,
    show_validation,
)

__all__ = [
    "create_analysis_panel",
    "create_errors_panel",
    "create_import_panel",
    "create_puzzle_table",
    "create_stats_table",
    "show_analysis",
    "show_import_result",
    "show_validation",
]
