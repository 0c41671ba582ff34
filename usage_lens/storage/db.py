"""
Database connection management.

Opens externally-owned SQLite stores strictly read-only.
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union


def get_connection(db_path: Union[str, Path]) -> Optional[sqlite3.Connection]:
    """Open a read-only SQLite connection.

    No writes happen through this connection, so no locking or journal
    setup is performed.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection, or None if the database file does not exist

    Raises:
        sqlite3.Error: If the file exists but cannot be opened
    """
    path = Path(db_path)
    if not path.is_file():
        return None
    uri = f"{path.resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True)
