#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import base64
import json
import os
import tempfile
import unittest

from deskconf.peers import ENCODED_PREFIX, decode_peer_filename, encode_peer_filename
from deskconf.records import PeerInfo, PeerProfile
from deskconf.service import ConfigService
from deskconf.settings import Settings


def _profile(platform: str = "Linux", **kwargs) -> PeerProfile:
    return PeerProfile(info=PeerInfo(username="alice", hostname="box", platform=platform), **kwargs)


class PeerFilenameTests(unittest.TestCase):
    def test_plain_id_unchanged(self) -> None:
        self.assertEqual(encode_peer_filename("simple"), "simple")
        self.assertEqual(encode_peer_filename("123456789"), "123456789")
        self.assertEqual(decode_peer_filename("simple"), "simple")

    def test_forbidden_chars_are_encoded(self) -> None:
        for peer_id in ("a/b", "host:21118", "x|y", "what?", "a\\b", "<tag>", "*"):
            stem = encode_peer_filename(peer_id)
            self.assertTrue(stem.startswith(ENCODED_PREFIX), peer_id)
            self.assertNotRegex(stem[len(ENCODED_PREFIX):], r"[<>:/\\|?*]")
            self.assertEqual(decode_peer_filename(stem), peer_id)

    def test_standard_alphabet_also_decodes(self) -> None:
        stem = ENCODED_PREFIX + base64.b64encode("a?>b".encode("utf-8")).decode("ascii")
        self.assertEqual(decode_peer_filename(stem), "a?>b")

    def test_bad_payload_falls_back_to_payload(self) -> None:
        self.assertEqual(decode_peer_filename(ENCODED_PREFIX + "!!!"), "!!!")
        self.assertEqual(decode_peer_filename(ENCODED_PREFIX), ENCODED_PREFIX)


class PeerRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.cfg = ConfigService(
            Settings(base_dir=self._td.name),
            key_material=lambda: b"test-key",
            id_source=lambda: "123456789",
        )
        self.addCleanup(self.cfg.close)
        self.peers = self.cfg.peers

    def test_store_and_load(self) -> None:
        prof = _profile(view_style="adaptive", port_forwards=[(8080, "localhost", 80)])
        self.peers.store("a/b", prof)
        self.assertTrue(self.peers.exists("a/b"))
        self.assertTrue(os.path.basename(self.peers.path_for("a/b")).startswith(ENCODED_PREFIX))
        loaded = self.peers.load("a/b")
        self.assertEqual(loaded.view_style, "adaptive")
        self.assertEqual(loaded.port_forwards, [(8080, "localhost", 80)])
        self.assertEqual(loaded.info.platform, "Linux")

    def test_missing_profile_loads_defaults(self) -> None:
        prof = self.peers.load("nobody")
        self.assertEqual(prof.view_style, "original")
        self.assertEqual(prof.scroll_style, "scrollauto")
        self.assertEqual(prof.image_quality, "balanced")
        self.assertEqual(prof.options.get("codec-preference"), "auto")
        self.assertFalse(self.peers.exists("nobody"))

    def test_id_ending_in_extension_keeps_it(self) -> None:
        self.peers.store("foo.json", _profile())
        self.assertTrue(self.peers.path_for("foo.json").endswith("foo.json.json"))
        self.assertEqual([p[0] for p in self.peers.list_all()], ["foo.json"])

    def test_secrets_encrypted_at_rest(self) -> None:
        prof = _profile(password=b"hunter2", options={"os-password": "root-pw", "rdp_password": "rdp-pw"})
        self.peers.store("42", prof)
        with open(self.peers.path_for("42"), "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertTrue(base64.b64decode(data["password"]).startswith(b"00"))
        self.assertTrue(data["options"]["os-password"].startswith("00"))
        self.assertTrue(data["options"]["rdp_password"].startswith("00"))
        self.assertNotIn("root-pw", json.dumps(data))
        loaded = self.peers.load("42")
        self.assertEqual(loaded.password, b"hunter2")
        self.assertEqual(loaded.options["os-password"], "root-pw")
        self.assertEqual(loaded.options["rdp_password"], "rdp-pw")

    def test_store_does_not_touch_callers_profile(self) -> None:
        prof = _profile(password=b"hunter2")
        self.peers.store("42", prof)
        self.assertEqual(prof.password, b"hunter2")

    def test_legacy_plaintext_profile_is_upgraded(self) -> None:
        path = self.peers.path_for("7")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "password": base64.b64encode(b"old-pw").decode("ascii"),
                    "info": {"platform": "Windows"},
                },
                f,
            )
        loaded = self.peers.load("7")
        self.assertEqual(loaded.password, b"old-pw")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertTrue(base64.b64decode(data["password"]).startswith(b"00"))

    def test_list_prunes_profiles_without_platform(self) -> None:
        self.peers.store("good", _profile())
        self.peers.store("stale", _profile(platform=""))
        listed = self.peers.list_all()
        self.assertEqual([p[0] for p in listed], ["good"])
        self.assertFalse(self.peers.exists("stale"))

    def test_list_orders_by_mtime_newest_first(self) -> None:
        for n, peer_id in enumerate(("old", "mid", "a/b")):
            self.peers.store(peer_id, _profile())
            ts = 1_700_000_000 + n * 100
            os.utime(self.peers.path_for(peer_id), (ts, ts))
        listed = self.peers.list_all()
        self.assertEqual([p[0] for p in listed], ["a/b", "mid", "old"])
        self.assertEqual(listed[0][1], 1_700_000_200)

    def test_list_ignores_other_files(self) -> None:
        self.peers.store("1", _profile())
        with open(os.path.join(self.peers.directory(), "notes.txt"), "w", encoding="utf-8") as f:
            f.write("x")
        os.makedirs(os.path.join(self.peers.directory(), "sub.json"))
        self.assertEqual([p[0] for p in self.peers.list_all()], ["1"])

    def test_list_without_directory_is_empty(self) -> None:
        self.assertEqual(self.peers.list_all(), [])

    def test_remove(self) -> None:
        self.peers.store("x:y", _profile())
        self.peers.remove("x:y")
        self.assertFalse(self.peers.exists("x:y"))
        self.peers.remove("x:y")


if __name__ == "__main__":
    unittest.main()
