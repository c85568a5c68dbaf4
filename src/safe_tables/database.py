"""A named collection of tables persisted to a single file."""

from __future__ import annotations

import contextlib
import gzip
import os
import struct
import tempfile
import zlib
from pathlib import Path
from typing import Iterator, Sequence

from safe_tables import codec
from safe_tables.config import Settings, get_settings
from safe_tables.errors import (
    CorruptFileError,
    IntegrityError,
    SafeTablesError,
    StorageIOError,
    TableAlreadyExistsError,
    TableNotFoundError,
)
from safe_tables.logging import get_logger
from safe_tables.schema import Column, Schema
from safe_tables.table import Table

logger = get_logger(__name__)


class Database:
    """Owns a set of uniquely named tables, in creation order.

    The database is the unit of persistence: save() writes every table to
    one file and read() reconstructs them. The digest of the last saved or
    read payload is remembered so integrity_check() can detect divergence.
    """

    def __init__(self, name: str = "", settings: Settings | None = None) -> None:
        self._name = name
        self._tables: dict[str, Table] = {}
        self._settings = settings or get_settings()
        self._digest: bytes | None = None
        # False after reading a file whose payload did not match its trailer
        self._trailer_matched = True

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> None:
        """Set the database name."""
        if not name:
            raise ValueError("Database name must be non-empty")
        self._name = name

    @property
    def settings(self) -> Settings:
        return self._settings

    # Tables

    def create_table(self, name: str, schema: Schema | Sequence[Column]) -> Table:
        """Create an empty table.

        Args:
            name: Table name, unique within this database.
            schema: A Schema, or the columns to build one from.

        Raises:
            TableAlreadyExistsError: If a table with this name exists.
        """
        if name in self._tables:
            raise TableAlreadyExistsError(name)
        if not isinstance(schema, Schema):
            schema = Schema(list(schema))
        table = Table(name, schema)
        self._tables[name] = table
        logger.debug("table_created", database=self._name, table=name, columns=schema.names)
        return table

    def table(self, name: str) -> Table:
        """Get a table by name.

        Raises:
            TableNotFoundError: If no table has this name.
        """
        try:
            return self._tables[name]
        except KeyError:
            raise TableNotFoundError(name) from None

    def drop_table(self, name: str) -> None:
        """Remove a table and all its rows."""
        if name not in self._tables:
            raise TableNotFoundError(name)
        del self._tables[name]
        logger.debug("table_dropped", database=self._name, table=name)

    @property
    def table_names(self) -> list[str]:
        return list(self._tables)

    @property
    def table_count(self) -> int:
        return len(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables.values()))

    def __len__(self) -> int:
        return len(self._tables)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Database):
            return NotImplemented
        return (
            self._name == other._name
            and list(self._tables.values()) == list(other._tables.values())
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Database({self._name!r}, tables={self.table_names})"

    # Persistence

    def to_bytes(self) -> bytes:
        """Encode the whole database, checksum trailer included."""
        return codec.encode(self._name, self._tables.values())

    def save(self, path: str | os.PathLike[str]) -> int:
        """Write the database to `path` atomically.

        The bytes go to a temporary file in the destination directory, which
        replaces `path` only once fully written. A `.gz` suffix compresses
        the file.

        Returns:
            Number of bytes written.

        Raises:
            StorageIOError: If writing fails. Any previous file at `path` is
                left as it was.
        """
        target = Path(path)
        data = self.to_bytes()
        payload_digest = data[-codec.DIGEST_SIZE :]
        if target.suffix == ".gz":
            data = gzip.compress(data, compresslevel=self._settings.compress_level, mtime=0)

        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                if self._settings.fsync_on_save:
                    os.fsync(f.fileno())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as e:
            logger.warning("save_failed", database=self._name, path=str(target), error=str(e))
            raise StorageIOError(f"Failed to save database: {e}", path=str(target)) from e
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)

        self._digest = payload_digest
        self._trailer_matched = True
        logger.debug(
            "database_saved",
            database=self._name,
            path=str(target),
            tables=len(self._tables),
            bytes=len(data),
        )
        return len(data)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        verify: bool | None = None,
        settings: Settings | None = None,
    ) -> Database:
        """Decode a database from bytes produced by to_bytes().

        Args:
            data: Encoded database.
            verify: Raise IntegrityError on a checksum mismatch. Defaults to
                the `verify_on_read` setting.
            settings: Settings for the returned database.

        Raises:
            CorruptFileError: If the bytes are malformed.
            SchemaViolationError: If a decoded row violates its schema.
            IntegrityError: If `verify` is set and the checksum does not match.
        """
        settings = settings or get_settings()
        if verify is None:
            verify = settings.verify_on_read

        decoded = codec.decode(data)
        if verify and not decoded.intact:
            raise IntegrityError(decoded.trailer_digest, decoded.payload_digest)

        db = cls(decoded.name, settings=settings)
        for table in decoded.tables:
            db._tables[table.name] = table
        db._digest = decoded.trailer_digest
        db._trailer_matched = decoded.intact
        return db

    @classmethod
    def read(
        cls,
        path: str | os.PathLike[str],
        verify: bool | None = None,
        settings: Settings | None = None,
    ) -> Database:
        """Read a database file written by save().

        Raises:
            StorageIOError: If the file cannot be read.
            CorruptFileError: If the file is malformed.
            SchemaViolationError: If a decoded row violates its schema.
            IntegrityError: If verification is on and the checksum does not match.
        """
        source = Path(path)
        opener = gzip.open if source.suffix == ".gz" else open
        try:
            with opener(source, "rb") as f:
                data = f.read()
        except gzip.BadGzipFile as e:
            raise CorruptFileError(f"Invalid gzip data in {source}: {e}") from e
        except EOFError as e:
            raise CorruptFileError(f"Truncated gzip data in {source}") from e
        except zlib.error as e:
            raise CorruptFileError(f"Invalid compressed data in {source}: {e}") from e
        except OSError as e:
            raise StorageIOError(f"Failed to read database: {e}", path=str(source)) from e

        try:
            db = cls.from_bytes(data, verify=verify, settings=settings)
        except IntegrityError as e:
            raise IntegrityError(e.expected, e.actual, path=str(source)) from None
        logger.debug("database_read", database=db.name, path=str(source), tables=db.table_count)
        return db

    load = read

    def integrity_check(self) -> bool:
        """Check the in-memory state against the last saved or read digest.

        Re-encodes the current tables and compares the payload digest with
        the digest recorded by the last successful save() or read(). Returns
        False when there is no recorded digest, or when the last read found a
        payload that did not match its trailer and nothing was saved since.
        Never repairs anything.
        """
        if self._digest is None:
            return False
        if not self._trailer_matched:
            logger.warning("integrity_check_failed", database=self._name, reason="trailer_mismatch")
            return False
        try:
            payload = codec.encode_payload(self._name, self._tables.values())
        except (SafeTablesError, struct.error, UnicodeError, ValueError) as e:
            logger.warning("integrity_check_failed", database=self._name, error=str(e))
            return False
        ok = codec.digest(payload) == self._digest
        if not ok:
            logger.warning("integrity_check_failed", database=self._name)
        return ok
