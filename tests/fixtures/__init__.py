"""
Shared test helpers for the datamigration tests.

- Row factories for source tables
- Fault-injecting writers and readers
- A writer that requests a block after a given page
"""

from tests.fixtures.tables import (
    BlockingWriter,
    FailingReader,
    FailingWriter,
    make_rows,
    make_table,
)

__all__ = [
    "BlockingWriter",
    "FailingReader",
    "FailingWriter",
    "make_rows",
    "make_table",
]
