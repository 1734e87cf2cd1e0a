from __future__ import annotations

import os
import struct
import tempfile
import unittest
import zipfile
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path

from sfxgen import tlv
from sfxgen.builder import RUNTIME_MODULES, artifact_filename, build_artifact, write_bundle_file
from sfxgen.bundle import BundleMetadata, assemble, parse_bundle, read_bundle
from sfxgen.challenge import make_challenge
from sfxgen.cli import cmd_info
from sfxgen.constants import BUNDLE_MAGIC, BUNDLE_RESOURCE
from sfxgen.errors import MalformedBundle


T = 638_000_000_000_000_000


def _meta(**kw) -> BundleMetadata:
    base = dict(artifact_name="notes.txt", payload_size=5, timestamp=T, challenge=make_challenge("pw1"))
    base.update(kw)
    return BundleMetadata(**base)


class BundleAssemblerTests(unittest.TestCase):
    def test_parse_recovers_metadata_and_blob(self):
        blob = os.urandom(48)
        meta = _meta(artifact_name="résumé 2024.pdf", payload_size=2**40)
        data = assemble(blob, meta)
        self.assertTrue(data.startswith(BUNDLE_MAGIC))
        self.assertTrue(data.endswith(blob))
        bundle = parse_bundle(data)
        self.assertEqual(bundle.metadata, meta)
        self.assertEqual(bundle.blob, blob)
        self.assertEqual((bundle.version_major, bundle.version_minor), (1, 0))

    def test_no_passphrase_metadata(self):
        bundle = parse_bundle(assemble(b"\x01" * 32, _meta(challenge=make_challenge(""))))
        self.assertFalse(bundle.metadata.challenge.required)
        self.assertEqual(bundle.metadata.challenge.text, "")

    def test_bad_magic(self):
        data = bytearray(assemble(b"\x00" * 32, _meta()))
        data[0] ^= 0xFF
        with self.assertRaises(MalformedBundle):
            parse_bundle(bytes(data))

    def test_unsupported_major_version(self):
        data = bytearray(assemble(b"\x00" * 32, _meta()))
        struct.pack_into("<H", data, 8, 2)
        with self.assertRaises(MalformedBundle):
            parse_bundle(bytes(data))

    def test_truncated(self):
        data = assemble(b"", _meta())
        with self.assertRaises(MalformedBundle):
            parse_bundle(data[:5])
        with self.assertRaises(MalformedBundle):
            parse_bundle(data[:20])

    def test_unknown_metadata_tags_are_skipped(self):
        raw = tlv.dumps_metadata({"artifact_name": "a", "payload_size": 1, "timestamp": 2}) + tlv._tlv(99, b"future")
        meta = tlv.loads_metadata(raw)
        self.assertEqual((meta["artifact_name"], meta["payload_size"], meta["timestamp"]), ("a", 1, 2))
        with self.assertRaises(ValueError):
            tlv.loads_metadata(tlv._tlv(1, b"a"))


class ArtifactBuilderTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)

    def test_artifact_name(self):
        self.assertEqual(artifact_filename("notes.txt"), "SelfExtractor_notes.pyz")
        self.assertEqual(artifact_filename("docs"), "SelfExtractor_docs.pyz")
        self.assertEqual(artifact_filename("archive.tar.gz"), "SelfExtractor_archive.tar.pyz")

    def test_build_embeds_runtime_and_bundle(self):
        data = assemble(os.urandom(32), _meta())
        out = self.root / "new" / "dir"
        path = build_artifact(data, str(out), "notes.txt")
        self.assertEqual(Path(path), out / "SelfExtractor_notes.pyz")
        with open(path, "rb") as fh:
            self.assertTrue(fh.read(2) == b"#!")
        with zipfile.ZipFile(path) as zf:
            names = set(zf.namelist())
            self.assertIn("__main__.py", names)
            self.assertEqual(zf.read(BUNDLE_RESOURCE), data)
            for mod in RUNTIME_MODULES:
                self.assertIn(f"sfxgen/{mod}", names)
            self.assertNotIn("sfxgen/packer.py", names)
        self.assertEqual(read_bundle(path).metadata, _meta())

    def test_read_raw_bundle_file(self):
        data = assemble(os.urandom(32), _meta())
        p = self.root / "notes.sfxb"
        p.write_bytes(data)
        self.assertEqual(read_bundle(str(p)).blob, data[-32:])

    def test_zip_without_resource(self):
        p = self.root / "other.zip"
        with zipfile.ZipFile(p, "w") as zf:
            zf.writestr("x.txt", b"x")
        with self.assertRaises(MalformedBundle):
            read_bundle(str(p))


class InfoCommandTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = tmp.name

    def _info(self, meta: BundleMetadata) -> str:
        path = write_bundle_file(assemble(os.urandom(32), meta), self.root, meta.artifact_name)
        buf = StringIO()
        with redirect_stdout(buf):
            self.assertTrue(cmd_info(path))
        return buf.getvalue()

    def test_reports_creation_time(self):
        out = self._info(_meta())
        self.assertIn("Name: notes.txt", out)
        self.assertIn("Created: 2022-", out)

    def test_timestamp_beyond_calendar_range(self):
        out = self._info(_meta(timestamp=2**63 - 1))
        self.assertIn(f"Created: {2**63 - 1} ticks (out of range)", out)
        self.assertIn("Payload size: 5", out)


if __name__ == "__main__":
    unittest.main()
