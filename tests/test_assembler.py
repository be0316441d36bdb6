"""Tests for package assembly."""

import asyncio
import hashlib
import io
import struct
import zipfile

import pytest
from crxpack.archive import Archiver
from crxpack.assembler import PackageAssembler, assemble_package, pack_crx, sign_archive
from crxpack.header import decode_file_header, verify_key_proof
from crxpack.identifier import is_valid_identifier
from crxpack.key_store import KeyStore, KeyStoreConfig
from crxpack.keys import identity_from_pem
from crxpack.reader import parse_package, verify_package
from crxpack.storage import InMemoryKeyStorage
from crxpack.types import ArchiveError, KeyStorageError
from .test_vectors import (
    FIXED_KEY_PEM,
    FIXED_IDENTIFIER,
    FIXED_PACKAGE_PREAMBLE_HEX,
    EMPTY_ARCHIVE_PACKAGE_LENGTH,
    EMPTY_ARCHIVE_PACKAGE_SHA256_HEX,
    EMPTY_ZIP,
    EMPTY_ZIP_PACKAGE_LENGTH,
    EMPTY_ZIP_PACKAGE_SHA256_HEX,
)


class StaticArchiver(Archiver):
    """Archiver returning fixed bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.calls = []

    async def build_zip(self, directory) -> bytes:
        self.calls.append(directory)
        return self.data


class FailingArchiver(Archiver):
    async def build_zip(self, directory) -> bytes:
        raise ArchiveError(f"Unable to read {directory}")


@pytest.fixture
def fixed_key_store():
    """Key store preloaded with the fixed key."""
    return KeyStore(KeyStoreConfig(persist=True), storage=InMemoryKeyStorage(pem=FIXED_KEY_PEM))


@pytest.fixture
def manifest_dir(tmp_path):
    """Directory holding only manifest.json."""
    root = tmp_path / "unpacked"
    root.mkdir()
    (root / "manifest.json").write_text('{"name":"X","version":"1.0"}', encoding="utf-8")
    return root


class TestPackCrx:
    """Test the byte layout."""

    def test_layout(self) -> None:
        packed = pack_crx(b"HEADER", b"ARCHIVE")
        assert packed == b"Cr24\x03\x00\x00\x00\x06\x00\x00\x00HEADERARCHIVE"

    def test_sign_archive_empty(self) -> None:
        packed = sign_archive(identity_from_pem(FIXED_KEY_PEM), b"")

        assert packed.identifier == FIXED_IDENTIFIER
        assert len(packed.package_bytes) == EMPTY_ARCHIVE_PACKAGE_LENGTH
        assert hashlib.sha256(packed.package_bytes).hexdigest() == EMPTY_ARCHIVE_PACKAGE_SHA256_HEX
        assert packed.archive_length == 0


class TestAssemblePackage:
    """Test the assembler end to end."""

    def test_golden_empty_archive(self, fixed_key_store) -> None:
        """Known key and empty archive give the exact OpenSSL-built package."""
        assembler = PackageAssembler(fixed_key_store, StaticArchiver(b""))
        packed = asyncio.run(assembler.assemble_package("unused"))

        assert packed.package_bytes[:12].hex() == FIXED_PACKAGE_PREAMBLE_HEX
        assert hashlib.sha256(packed.package_bytes).hexdigest() == EMPTY_ARCHIVE_PACKAGE_SHA256_HEX
        assert packed.identifier == FIXED_IDENTIFIER

    def test_golden_empty_zip(self, fixed_key_store) -> None:
        assembler = PackageAssembler(fixed_key_store, StaticArchiver(EMPTY_ZIP))
        packed = asyncio.run(assembler.assemble_package("unused"))

        assert len(packed.package_bytes) == EMPTY_ZIP_PACKAGE_LENGTH
        assert hashlib.sha256(packed.package_bytes).hexdigest() == EMPTY_ZIP_PACKAGE_SHA256_HEX
        assert packed.package_bytes.endswith(EMPTY_ZIP)

    def test_length_invariant(self, fixed_key_store) -> None:
        archive = b"PK" + bytes(1000)
        assembler = PackageAssembler(fixed_key_store, StaticArchiver(archive))
        packed = asyncio.run(assembler.assemble_package("unused"))

        (header_length,) = struct.unpack_from("<I", packed.package_bytes, 8)
        assert packed.header_length == header_length
        assert packed.archive_length == len(archive)
        assert 12 + header_length + len(archive) == len(packed.package_bytes)
        assert packed.package_bytes[12 + header_length:] == archive

    def test_manifest_scenario(self, manifest_dir) -> None:
        """A directory with only manifest.json packs into a valid package."""
        packed = asyncio.run(PackageAssembler(KeyStore()).assemble_package(manifest_dir))

        assert len(packed.identifier) == 32
        assert set(packed.identifier) <= set("abcdefghijklmnop")

        package = parse_package(packed.package_bytes)
        assert len(packed.package_bytes) == 12 + packed.header_length + len(package.archive)
        with zipfile.ZipFile(io.BytesIO(package.archive)) as zf:
            assert zf.namelist() == ["manifest.json"]
        assert verify_package(packed.package_bytes).valid

    def test_identifier_stable_across_builds(self, fixed_key_store, tmp_path) -> None:
        first_dir = tmp_path / "v1"
        second_dir = tmp_path / "v2"
        first_dir.mkdir()
        second_dir.mkdir()
        (first_dir / "manifest.json").write_text('{"name":"X","version":"1.0"}', encoding="utf-8")
        (second_dir / "manifest.json").write_text('{"name":"X","version":"1.1"}', encoding="utf-8")

        assembler = PackageAssembler(fixed_key_store)

        async def run():
            return (
                await assembler.assemble_package(first_dir),
                await assembler.assemble_package(second_dir),
            )

        first, second = asyncio.run(run())
        assert first.identifier == second.identifier == FIXED_IDENTIFIER
        assert first.package_bytes != second.package_bytes

    def test_repeatable_for_same_input(self, fixed_key_store, manifest_dir) -> None:
        assembler = PackageAssembler(fixed_key_store)

        first = asyncio.run(assembler.assemble_package(manifest_dir))
        second = asyncio.run(assembler.assemble_package(manifest_dir))
        assert first == second

    def test_concurrent_packaging_single_identity(self, manifest_dir) -> None:
        storage = InMemoryKeyStorage()
        assembler = PackageAssembler(KeyStore(KeyStoreConfig(persist=True), storage=storage))

        async def run():
            return await asyncio.gather(*(assembler.assemble_package(manifest_dir) for _ in range(4)))

        results = asyncio.run(run())
        assert len({packed.identifier for packed in results}) == 1
        assert storage.save_count == 1

    def test_tampered_archive_rejected(self, fixed_key_store) -> None:
        archive = b"PK\x03\x04" + bytes(range(64))
        packed = asyncio.run(PackageAssembler(fixed_key_store, StaticArchiver(archive)).assemble_package("x"))

        tampered = bytearray(packed.package_bytes)
        tampered[-1] ^= 0xFF
        header = decode_file_header(bytes(tampered[12:12 + packed.header_length]))
        proof = header.sha256_with_rsa[0]

        assert verify_key_proof(proof, header.signed_header_data, archive)
        assert not verify_key_proof(proof, header.signed_header_data, bytes(tampered[12 + packed.header_length:]))
        assert not verify_package(bytes(tampered)).valid

    def test_archive_error_propagates(self, fixed_key_store) -> None:
        assembler = PackageAssembler(fixed_key_store, FailingArchiver())

        with pytest.raises(ArchiveError, match="Unable to read"):
            asyncio.run(assembler.assemble_package("broken"))

    def test_key_error_aborts_before_archiving(self) -> None:
        archiver = StaticArchiver(b"")
        store = KeyStore(KeyStoreConfig(persist=True), storage=InMemoryKeyStorage(pem=b"garbage"))

        with pytest.raises(KeyStorageError):
            asyncio.run(PackageAssembler(store, archiver).assemble_package("x"))
        assert archiver.calls == []

    def test_module_level_helper(self, fixed_key_store, manifest_dir) -> None:
        packed = asyncio.run(assemble_package(manifest_dir, key_store=fixed_key_store))

        assert packed.identifier == FIXED_IDENTIFIER
        assert is_valid_identifier(packed.identifier)
