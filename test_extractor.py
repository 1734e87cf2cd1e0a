from __future__ import annotations

import io
import os
import tempfile
import unittest
import zipfile
from pathlib import Path
from typing import Optional
from unittest import mock

from sfxgen import cipher
from sfxgen.bundle import BundleMetadata, assemble
from sfxgen.challenge import make_challenge
from sfxgen.errors import (
    DecryptionFailed,
    InvalidKey,
    MalformedBlob,
    MalformedBundle,
    NoDestination,
    UnsafeEntryPath,
)
from sfxgen.extractor import Extractor, State, extract_bundle
from sfxgen.keyderive import derive_key
from sfxgen.packer import Selection, pack_selections


T = 638_000_000_000_000_000


def _seal_bytes(paths, passphrase: str = "", *, scheme: str = "plain", challenge_secret: Optional[str] = None) -> bytes:
    packed = pack_selections([Selection.from_path(str(p)) for p in paths])
    key = derive_key(passphrase, packed.artifact_name, packed.total_size, T)
    meta = BundleMetadata(
        artifact_name=packed.artifact_name,
        payload_size=packed.total_size,
        timestamp=T,
        challenge=make_challenge(passphrase if challenge_secret is None else challenge_secret, scheme),
    )
    return assemble(cipher.encrypt(packed.data, key), meta)


def _seal_zip(entries, name: str = "raw") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for arc, data in entries:
            zf.writestr(arc, data)
    key = derive_key("", name, 0, T)
    return assemble(cipher.encrypt(buf.getvalue(), key), BundleMetadata(name, 0, T))


class ExtractorTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)
        self.src = self.root / "src"
        self.src.mkdir()
        self.out = self.root / "out"
        (self.src / "notes.txt").write_bytes(b"hello")

    def _never(self, *_a):
        raise AssertionError("prompt should not be called")

    def test_scenario_correct_passphrase(self):
        data = _seal_bytes([self.src / "notes.txt"], "pw1")
        run = extract_bundle(data, passphrase="pw1", destination=str(self.out))
        self.assertEqual(run.state, State.DONE)
        self.assertTrue(run.ok)
        self.assertEqual(run.secret, "pw1")
        self.assertEqual(run.written, ("notes.txt",))
        self.assertEqual((self.out / "notes.txt").read_bytes(), b"hello")

    def test_scenario_wrong_passphrase_stops_before_decrypting(self):
        data = _seal_bytes([self.src / "notes.txt"], "pw1")
        choose = mock.Mock(return_value=str(self.out))
        with mock.patch("sfxgen.cipher.decrypt") as decrypt:
            run = Extractor(data, ask_passphrase=lambda _m: "pw2", choose_destination=choose).run()
            decrypt.assert_not_called()
        choose.assert_not_called()
        self.assertEqual(run.state, State.ERROR)
        self.assertEqual(run.failed_in, State.CHALLENGE)
        self.assertIsInstance(run.error, InvalidKey)
        self.assertFalse(self.out.exists())

    def test_cancelled_passphrase_prompt(self):
        data = _seal_bytes([self.src / "notes.txt"], "pw1")
        with self.assertRaises(InvalidKey):
            extract_bundle(data, ask_passphrase=lambda _m: None, destination=str(self.out))

    def test_argon2id_challenge(self):
        data = _seal_bytes([self.src / "notes.txt"], "pw1", scheme="argon2id")
        extract_bundle(data, passphrase="pw1", destination=str(self.out))
        self.assertEqual((self.out / "notes.txt").read_bytes(), b"hello")
        with self.assertRaises(InvalidKey):
            extract_bundle(data, passphrase="pw2", destination=str(self.out))

    def test_no_passphrase_skips_prompt(self):
        data = _seal_bytes([self.src / "notes.txt"])
        run = Extractor(data, ask_passphrase=self._never, choose_destination=lambda _m: str(self.out)).run()
        self.assertEqual(run.state, State.DONE)
        self.assertEqual(run.secret, "")

    def test_no_destination(self):
        data = _seal_bytes([self.src / "notes.txt"])
        for answer in (None, "", "   "):
            run = Extractor(data, choose_destination=lambda _m: answer).run()
            self.assertEqual(run.state, State.ERROR)
            self.assertEqual(run.failed_in, State.DESTINATION)
            self.assertIsInstance(run.error, NoDestination)

    def test_destination_is_created(self):
        data = _seal_bytes([self.src / "notes.txt"])
        target = self.out / "deep" / "er"
        extract_bundle(data, destination=str(target))
        self.assertEqual((target / "notes.txt").read_bytes(), b"hello")

    def test_wrong_key_reports_decryption_failed_and_writes_nothing(self):
        # challenge left empty, payload keyed with a passphrase
        data = _seal_bytes([self.src / "notes.txt"], "pw1", challenge_secret="")
        run = Extractor(data, choose_destination=lambda _m: str(self.out)).run()
        self.assertEqual(run.state, State.ERROR)
        self.assertEqual(run.failed_in, State.DECRYPTING)
        self.assertIsInstance(run.error, DecryptionFailed)
        self.assertEqual(os.listdir(self.out), [])

    def test_malformed_blob(self):
        data = assemble(b"\x00" * 10, BundleMetadata("notes.txt", 5, T))
        run = Extractor(data, choose_destination=lambda _m: str(self.out)).run()
        self.assertIsInstance(run.error, MalformedBlob)
        self.assertEqual(run.failed_in, State.DECRYPTING)
        self.assertEqual(os.listdir(self.out), [])

    def test_malformed_bundle(self):
        run = Extractor(b"not a bundle at all").run()
        self.assertIsInstance(run.error, MalformedBundle)
        self.assertEqual(run.failed_in, State.INIT)

    def test_overwrites_existing_files(self):
        self.out.mkdir()
        (self.out / "notes.txt").write_bytes(b"old contents")
        extract_bundle(_seal_bytes([self.src / "notes.txt"]), destination=str(self.out))
        self.assertEqual((self.out / "notes.txt").read_bytes(), b"hello")

    def test_directory_tree_roundtrip(self):
        tree = self.src / "proj"
        (tree / "src" / "pkg").mkdir(parents=True)
        (tree / "empty").mkdir()
        (tree / "src" / "pkg" / "mod.py").write_text("x = 1\n", encoding="utf-8")
        (tree / "README").write_bytes(os.urandom(300))
        data = _seal_bytes([tree, self.src / "notes.txt"], "s3cret")
        extract_bundle(data, passphrase="s3cret", destination=str(self.out))
        self.assertTrue((self.out / "proj" / "empty").is_dir())
        self.assertEqual((self.out / "proj" / "src" / "pkg" / "mod.py").read_text(encoding="utf-8"), "x = 1\n")
        self.assertEqual((self.out / "proj" / "README").read_bytes(), (tree / "README").read_bytes())
        self.assertEqual((self.out / "notes.txt").read_bytes(), b"hello")

    def test_partial_extraction_is_kept(self):
        (self.src / "blocker").mkdir()
        (self.src / "blocker" / "x.txt").write_bytes(b"x")
        (self.src / "a.txt").write_bytes(b"a")
        data = _seal_bytes([self.src / "a.txt", self.src / "blocker"])
        self.out.mkdir()
        (self.out / "blocker").write_bytes(b"a file where a directory should go")
        run = Extractor(data, choose_destination=lambda _m: str(self.out)).run()
        self.assertEqual(run.state, State.ERROR)
        self.assertEqual(run.failed_in, State.UNPACKING)
        self.assertIsInstance(run.error, OSError)
        self.assertEqual(run.written, ("a.txt",))
        self.assertEqual((self.out / "a.txt").read_bytes(), b"a")

    def test_rejects_parent_traversal(self):
        data = _seal_zip([("ok.txt", b"ok"), ("../evil.txt", b"evil")])
        run = Extractor(data, choose_destination=lambda _m: str(self.out)).run()
        self.assertIsInstance(run.error, UnsafeEntryPath)
        self.assertEqual(run.written, ("ok.txt",))
        self.assertFalse((self.root / "evil.txt").exists())

    def test_step_is_idempotent_on_terminal_states(self):
        ex = Extractor(_seal_bytes([self.src / "notes.txt"]), choose_destination=lambda _m: str(self.out))
        run = ex.run()
        self.assertIs(ex.step(run), run)

    def test_states_visited_in_order(self):
        ex = Extractor(_seal_bytes([self.src / "notes.txt"], "pw1"), ask_passphrase=lambda _m: "pw1", choose_destination=lambda _m: str(self.out))
        run = ex.start()
        seen = [run.state]
        while run.state not in (State.DONE, State.ERROR):
            run = ex.step(run)
            seen.append(run.state)
        self.assertEqual(
            seen,
            [State.INIT, State.CHALLENGE, State.DESTINATION, State.DECRYPTING, State.UNPACKING, State.DONE],
        )
        run.container.close()


if __name__ == "__main__":
    unittest.main()
