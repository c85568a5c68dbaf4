"""Tests for the Database container and file persistence."""

import gzip
import math
import os

import pytest

from safe_tables import Column, Database, Schema, Settings, TypeDef, array_of
from safe_tables.errors import (
    CorruptFileError,
    IntegrityError,
    SafeTablesError,
    StorageIOError,
    TableAlreadyExistsError,
    TableNotFoundError,
)


class TestTables:
    """Tests for table management."""

    def test_create_and_lookup(self, db, users_schema):
        """Test creating a table and looking it up by name."""
        table = db.create_table("users", users_schema)
        assert db.table("users") is table
        assert "users" in db
        assert db.table_names == ["users"]
        assert db.table_count == 1

    def test_create_from_columns(self, db):
        """Test creating a table from a column list."""
        table = db.create_table("t", [Column("a", TypeDef.INT8)])
        assert table.schema.names == ["a"]

    def test_duplicate_table(self, db, users):
        """Test the first definition survives a duplicate create."""
        with pytest.raises(TableAlreadyExistsError):
            db.create_table("users", Schema([Column("x", TypeDef.BOOL)]))
        assert db.table("users") is users
        assert db.table("users").schema.names == ["id", "name", "age"]
        assert users.count == 3

    def test_table_not_found(self, db):
        """Test looking up a missing table."""
        with pytest.raises(TableNotFoundError, match="nope"):
            db.table("nope")

    def test_drop_table(self, db, users):
        """Test dropping a table."""
        db.drop_table("users")
        assert "users" not in db
        with pytest.raises(TableNotFoundError):
            db.drop_table("users")

    def test_iteration_in_creation_order(self, db):
        """Test tables iterate in creation order."""
        for name in ("c", "a", "b"):
            db.create_table(name, [Column("v", TypeDef.INT8)])
        assert [t.name for t in db] == ["c", "a", "b"]
        assert len(db) == 3

    def test_set_name(self, db):
        """Test naming a database."""
        db.set_name("inventory")
        assert db.name == "inventory"
        with pytest.raises(ValueError):
            db.set_name("")


class TestPersistence:
    """Tests for save and read."""

    def test_round_trip(self, db, users, tmp_path):
        """Test a saved database reads back equal."""
        extra = db.create_table(
            "extra",
            [
                Column("flag", TypeDef.BOOL),
                Column("tags", array_of(TypeDef.STRING)),
                Column("note", TypeDef.STRING, nullable=True),
                Column("blob", TypeDef.BYTES),
            ],
        )
        extra.insert([True, ["a", "b"], None, b"\x00\xff"])
        path = tmp_path / "test.sfn"
        db.save(path)

        loaded = Database.read(path)
        assert loaded == db
        assert loaded.name == "test"
        assert loaded.table_names == ["users", "extra"]
        assert loaded.table("users").filter(lambda r: r.get("age", int) > 20).rows(["id"]).execute().get(
            "id", int
        ) == [1, 3]

    def test_round_trip_gzip(self, db, users, tmp_path):
        """Test a .gz path is compressed and reads back equal."""
        path = tmp_path / "test.sfn.gz"
        db.save(path)
        with gzip.open(path, "rb") as f:
            assert f.read(4) == b"SAFN"
        assert Database.read(path) == db

    def test_load_alias(self, db, users, tmp_path):
        """Test load is an alias for read."""
        path = tmp_path / "test.sfn"
        db.save(path)
        assert Database.load(path) == db

    def test_save_replaces_previous_file(self, db, users, tmp_path):
        """Test saving over an existing file."""
        path = tmp_path / "test.sfn"
        db.save(path)
        users.insert([4, "Di", 40])
        db.save(path)
        assert Database.read(path).table("users").count == 4
        assert os.listdir(tmp_path) == ["test.sfn"]

    def test_save_failure_keeps_previous_file(self, db, users, tmp_path, monkeypatch):
        """Test a failed write leaves the previous file intact and no temp file."""
        path = tmp_path / "test.sfn"
        db.save(path)
        before = path.read_bytes()
        users.insert([4, "Di", 40])

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(StorageIOError, match="disk full"):
            db.save(path)
        monkeypatch.undo()

        assert path.read_bytes() == before
        assert os.listdir(tmp_path) == ["test.sfn"]

    def test_save_to_missing_directory(self, db, users, tmp_path):
        """Test saving into a directory that does not exist."""
        with pytest.raises(StorageIOError):
            db.save(tmp_path / "missing" / "test.sfn")

    def test_read_missing_file(self, tmp_path):
        """Test reading a file that does not exist."""
        with pytest.raises(StorageIOError):
            Database.read(tmp_path / "nope.sfn")

    def test_read_garbage(self, tmp_path):
        """Test reading a file that is not a database."""
        path = tmp_path / "garbage.sfn"
        path.write_bytes(b"this is not a database file at all, not even close")
        with pytest.raises(CorruptFileError):
            Database.read(path)

    def test_read_bad_gzip(self, tmp_path):
        """Test reading a .gz path holding plain bytes."""
        path = tmp_path / "bad.sfn.gz"
        path.write_bytes(b"not gzip data")
        with pytest.raises(CorruptFileError):
            Database.read(path)

    def test_read_corrupt_deflate_stream(self, tmp_path):
        """Test a .gz file whose deflate block is invalid."""
        path = tmp_path / "bad.sfn.gz"
        header = b"\x1f\x8b\x08\x00" + b"\x00" * 4 + b"\x00\xff"
        # BFINAL=1 with the reserved block type 11
        path.write_bytes(header + b"\x07" + b"\x00" * 8)
        with pytest.raises(CorruptFileError):
            Database.read(path)

    def test_round_trip_float_specials(self, db, tmp_path):
        """Test NaN and signed zeros survive a save and read."""
        table = db.create_table(
            "floats",
            [
                Column("f32", TypeDef.FLOAT32),
                Column("f64", TypeDef.FLOAT64),
                Column("many", array_of(TypeDef.FLOAT64)),
            ],
        )
        table.insert([math.nan, math.nan, [math.nan, -0.0, 0.0]])
        table.insert([-0.0, 0.0, [math.inf, -math.inf]])
        path = tmp_path / "floats.sfn"
        db.save(path)

        loaded = Database.read(path)
        assert loaded == db
        assert loaded.integrity_check()
        row = loaded.table("floats").get_at(1)
        assert math.copysign(1.0, row.get("f32", float)) == -1.0


class TestIntegrity:
    """Tests for integrity checking."""

    def test_never_saved(self, db, users):
        """Test a database with no recorded digest fails the check."""
        assert db.integrity_check() is False

    def test_after_save_and_read(self, db, users, tmp_path):
        """Test saved and re-read databases pass the check."""
        path = tmp_path / "test.sfn"
        db.save(path)
        assert db.integrity_check()
        assert Database.read(path).integrity_check()

    def test_detects_mutation_after_save(self, db, users, tmp_path):
        """Test in-memory changes after a save are reported."""
        db.save(tmp_path / "test.sfn")
        users.insert([4, "Di", 40])
        assert not db.integrity_check()

    def test_detects_flipped_payload_byte(self, db, users, tmp_path):
        """Test a single flipped payload byte fails the check on re-read."""
        path = tmp_path / "test.sfn"
        db.save(path)
        data = bytearray(path.read_bytes())
        data[data.index(b"Ann")] ^= 0x20
        path.write_bytes(bytes(data))

        loaded = Database.read(path)
        assert loaded.table("users").get_at(0).get("name", str) == "ann"
        assert loaded.integrity_check() is False

    def test_verify_on_read_raises(self, db, users, tmp_path):
        """Test verify=True turns a checksum mismatch into an error."""
        path = tmp_path / "test.sfn"
        db.save(path)
        data = bytearray(path.read_bytes())
        data[data.index(b"Cy")] ^= 0x20
        path.write_bytes(bytes(data))

        with pytest.raises(IntegrityError) as exc_info:
            Database.read(path, verify=True)
        assert str(path) in str(exc_info.value)

    def test_verify_on_read_setting(self, db, users, tmp_path):
        """Test the verify_on_read setting enables verification."""
        path = tmp_path / "test.sfn"
        db.save(path)
        data = bytearray(path.read_bytes())
        data[data.index(b"Bo")] ^= 0x20
        path.write_bytes(bytes(data))

        with pytest.raises(IntegrityError):
            Database.read(path, settings=Settings(fsync_on_save=False, verify_on_read=True))

    def test_bytes_round_trip(self, db, users):
        """Test in-memory encoding without a file."""
        loaded = Database.from_bytes(db.to_bytes())
        assert loaded == db
        assert loaded.integrity_check()

    def _undetected_flips(self, path, data, offsets):
        """Flip one bit at each offset and return offsets that went unnoticed."""
        undetected = []
        for offset in offsets:
            corrupted = bytearray(data)
            corrupted[offset] ^= 0x01
            path.write_bytes(bytes(corrupted))
            try:
                loaded = Database.read(path)
            except SafeTablesError:
                continue
            if loaded.integrity_check():
                undetected.append(offset)
        return undetected

    def test_every_payload_byte_flip_detected(self, db, users, tmp_path):
        """Test flipping any payload byte fails the read or the check."""
        path = tmp_path / "test.sfn"
        db.save(path)
        data = path.read_bytes()
        payload_size = len(data) - 32
        assert self._undetected_flips(path, data, range(payload_size)) == []

    def test_every_compressed_byte_flip_detected(self, db, users, tmp_path):
        """Test flipping any byte of a .gz body or its trailer is detected."""
        path = tmp_path / "test.sfn.gz"
        db.save(path)
        data = path.read_bytes()
        # The 10-byte gzip header (mtime, flags, OS) is not part of the compressed stream
        assert self._undetected_flips(path, data, range(10, len(data))) == []

    def test_mismatched_trailer_fails_until_saved(self, db, users, tmp_path):
        """Test a database read with a bad trailer fails the check until saved again."""
        data = db.to_bytes()
        tampered = data[:-32] + bytes(32)
        loaded = Database.from_bytes(tampered, verify=False)
        assert loaded == db
        assert loaded.integrity_check() is False

        loaded.save(tmp_path / "fixed.sfn")
        assert loaded.integrity_check()
