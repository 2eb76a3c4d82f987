# storefront/database.py
"""
File-backed table store using one CSV file per table.
Provides CRUD primitives per table name plus the conditional stock decrement
used by order placement. Every write holds a per-table file lock for the
whole read-modify-write and replaces the file atomically, so readers never
see a half written table.

Usage:
    db = FileBackedDB(settings.DATA_DIR, settings.table_files)
    db.list_records("users")
    db.get_record("products", "id", "abc123")
    db.create_record("users", {"username": "bob", "email": "b@x.com"})
"""

import logging
import os
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
from filelock import FileLock

from storefront.core.errors import DuplicateRecordError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _cell(value: Any) -> str:
    # the store is string-oriented; normalize before anything touches a DataFrame
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value)


def _row_to_record(row: Mapping[str, Any]) -> Record:
    return {k: ("" if pd.isna(v) else v) for k, v in row.items()}


class FileBackedDB:
    """
    Manages the CSV files inside `data_dir`.
    Table names are resolved through `table_files`, else `<table>.csv`.
    """

    def __init__(self, data_dir: Path, table_files: Optional[Dict[str, str]] = None):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.table_files = dict(table_files or {})
        self._locks: Dict[str, FileLock] = {}
        self._locks_guard = threading.Lock()

    def _file_path(self, table: str) -> Path:
        if table.endswith(".csv"):
            return self.data_dir / table
        return self.data_dir / self.table_files.get(table, f"{table}.csv")

    def _lock_for(self, table: str) -> FileLock:
        # one lock object per file: re-entrant within a thread, exclusive across threads/processes
        path = str(self._file_path(table)) + ".lock"
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = FileLock(path)
                self._locks[path] = lock
            return lock

    def _read_df(self, table: str) -> pd.DataFrame:
        path = self._file_path(table)
        if not path.exists() or path.stat().st_size == 0:
            return pd.DataFrame()
        return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")

    def _write_df_nolock(self, table: str, df: pd.DataFrame) -> None:
        """
        Write DataFrame for `table` WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        """
        path = self._file_path(table)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as fh:
                df.to_csv(fh, index=False)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    @staticmethod
    def _append(df: pd.DataFrame, rows: List[Record]) -> pd.DataFrame:
        new_df = pd.DataFrame(rows, dtype=object)
        if df.empty:
            columns = list(dict.fromkeys(list(df.columns) + list(new_df.columns)))
            return new_df.reindex(columns=columns, fill_value="")
        return pd.concat([df, new_df], ignore_index=True, sort=False).fillna("")

    @staticmethod
    def _mask(df: pd.DataFrame, key: str, value: Any) -> pd.Series:
        if df.empty or key not in df.columns:
            return pd.Series([False] * len(df), index=df.index, dtype=bool)
        return df[key].astype(str) == _cell(value)

    # --- high-level CRUD primitives ---

    def list_records(self, table: str) -> List[Record]:
        df = self._read_df(table)
        if df.empty:
            return []
        return [_row_to_record(r) for r in df.to_dict(orient="records")]

    def find_records(self, table: str, **filters: Any) -> List[Record]:
        """Return every row whose columns equal all of `filters` (string comparison)."""
        df = self._read_df(table)
        if df.empty:
            return []
        mask = pd.Series([True] * len(df), index=df.index, dtype=bool)
        for key, value in filters.items():
            mask &= self._mask(df, key, value)
        return [_row_to_record(r) for r in df[mask].to_dict(orient="records")]

    def get_record(self, table: str, key: str, value: Any) -> Optional[Record]:
        df = self._read_df(table)
        mask = self._mask(df, key, value)
        if not mask.any():
            return None
        return _row_to_record(df[mask].iloc[0].to_dict())

    def create_record(self, table: str, data: Record, id_field: str = "id",
                      unique: Iterable[str] = ()) -> Record:
        """
        Create a new record. If id_field is missing from `data`, a uuid4 hex id is generated.
        Raises DuplicateRecordError when a row already holds the same value in any `unique` field.
        Returns the saved record (with id).
        """
        return self.create_records(table, [data], id_field=id_field, unique=unique)[0]

    def create_records(self, table: str, rows: List[Record], id_field: str = "id",
                       unique: Iterable[str] = ()) -> List[Record]:
        """Insert several rows with a single write. Either all rows are stored or none."""
        unique = tuple(unique)
        saved: List[Record] = []
        for data in rows:
            if not data.get(id_field):
                data[id_field] = uuid.uuid4().hex
            saved.append({k: _cell(v) for k, v in data.items()})

        with self._lock_for(table):
            df = self._read_df(table)
            for field_name in unique:
                for row in saved:
                    if self._mask(df, field_name, row.get(field_name)).any():
                        raise DuplicateRecordError(
                            f"{table}.{field_name} already exists", details={field_name: row.get(field_name)}
                        )
            df = self._append(df, saved)
            self._write_df_nolock(table, df)
        return saved

    def update_record(self, table: str, key: str, value: Any, updates: Record) -> Optional[Record]:
        """
        Update rows where df[key] == value with fields in updates. Returns the updated first row dict or None.
        """
        with self._lock_for(table):
            df = self._read_df(table)
            mask = self._mask(df, key, value)
            if not mask.any():
                return None
            for k, v in updates.items():
                if k not in df.columns:
                    df[k] = ""
                df.loc[mask, k] = _cell(v)
            self._write_df_nolock(table, df)
            return _row_to_record(df[mask].iloc[0].to_dict())

    def delete_record(self, table: str, key: str, value: Any) -> bool:
        """
        Delete all records where df[key] == value. Returns True if any rows were removed.
        """
        with self._lock_for(table):
            df = self._read_df(table)
            mask = self._mask(df, key, value)
            if not mask.any():
                return False
            self._write_df_nolock(table, df[~mask])
            return True

    def decrement_if_available(self, table: str, key: str, value: Any, field_name: str,
                               amount: int) -> Optional[Record]:
        """
        Atomically subtract `amount` from an integer column, only when the current value is >= amount.
        Returns the updated row, or None when the row is missing or the value is too low.
        """
        with self._lock_for(table):
            df = self._read_df(table)
            mask = self._mask(df, key, value)
            if not mask.any():
                return None
            idx = df[mask].index[0]
            try:
                current = int(float(df.at[idx, field_name] or 0))
            except (KeyError, ValueError):
                current = 0
            if current < amount:
                return None
            df.at[idx, field_name] = str(current - amount)
            self._write_df_nolock(table, df)
            return _row_to_record(df.loc[idx].to_dict())

    def increment(self, table: str, key: str, value: Any, field_name: str, amount: int = 1) -> Optional[Record]:
        """Atomically add `amount` to an integer column. Returns the updated row, or None when missing."""
        with self._lock_for(table):
            df = self._read_df(table)
            mask = self._mask(df, key, value)
            if not mask.any():
                return None
            if field_name not in df.columns:
                df[field_name] = ""
            idx = df[mask].index[0]
            try:
                current = int(float(df.at[idx, field_name] or 0))
            except ValueError:
                current = 0
            df.at[idx, field_name] = str(current + amount)
            self._write_df_nolock(table, df)
            return _row_to_record(df.loc[idx].to_dict())
