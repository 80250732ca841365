#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import os
import tempfile
import threading
import time
import unittest
from unittest import mock

from deskconf.constants import ID_MAC_MASK, ID_RANDOM_MAX, ID_RANDOM_MIN, PASSWORD_CHARS
from deskconf.identity import auto_password, generate_keypair, mac_to_id, random_id
from deskconf.service import ConfigService
from deskconf.settings import Settings


def _service(base_dir: str, key: bytes = b"test-key", **kwargs) -> ConfigService:
    kwargs.setdefault("id_source", lambda: "123456789")
    return ConfigService(Settings(base_dir=base_dir), key_material=lambda: key, **kwargs)


def _raw(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class IdHelpersTests(unittest.TestCase):
    def test_mac_to_id_folds_low_bytes(self) -> None:
        mac = bytes([0x00, 0x11, 0x22, 0x33, 0x44, 0x55])
        self.assertEqual(mac_to_id(mac), str(0x22334455 & ID_MAC_MASK))

    def test_random_id_range(self) -> None:
        for _ in range(50):
            value = int(random_id())
            self.assertGreaterEqual(value, ID_RANDOM_MIN)
            self.assertLess(value, ID_RANDOM_MAX)

    def test_auto_password_alphabet(self) -> None:
        pw = auto_password(32)
        self.assertEqual(len(pw), 32)
        self.assertTrue(all(c in PASSWORD_CHARS for c in pw))
        self.assertEqual(auto_password(0), "")

    def test_generate_keypair_sizes(self) -> None:
        secret, public = generate_keypair()
        self.assertEqual(len(secret), 32)
        self.assertEqual(len(public), 32)


class IdentityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.base = self._td.name

    def _open(self, **kwargs) -> ConfigService:
        cfg = _service(self.base, **kwargs)
        self.addCleanup(cfg.close)
        return cfg

    def test_fresh_install_generates_and_encrypts_id(self) -> None:
        cfg = self._open(id_source=lambda: "555000111")
        self.assertEqual(cfg.get_id(), "555000111")
        data = _raw(cfg.file_path(""))
        self.assertEqual(data["id"], "")
        self.assertTrue(data["enc_id"].startswith("00"))

    def test_encrypted_id_is_trusted_on_reload(self) -> None:
        cfg = self._open()
        cfg.set_id("42")
        again = self._open(id_source=lambda: "999")
        self.assertEqual(again.get_id(), "42")

    def test_id_from_another_machine_is_replaced(self) -> None:
        cfg = self._open()
        cfg.set_id("42")
        other = self._open(key=b"other-machine", id_source=lambda: "777")
        self.assertEqual(other.get_id(), "777")

    def test_legacy_plaintext_id_is_migrated(self) -> None:
        path = os.path.join(self.base, "Deskline.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"id": "123456789"}, f)
        cfg = self._open(id_source=lambda: "999", exe_time_source=lambda: time.time() + 3600)
        self.assertEqual(cfg.get_id(), "123456789")
        data = _raw(path)
        self.assertEqual(data["id"], "")
        self.assertTrue(data["enc_id"])
        reopened = self._open(id_source=lambda: "999")
        self.assertEqual(reopened.get_id(), "123456789")

    def test_plaintext_id_newer_than_executable_is_not_trusted(self) -> None:
        path = os.path.join(self.base, "Deskline.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"id": "123456789"}, f)
        cfg = self._open(id_source=lambda: "999", exe_time_source=lambda: 0.0)
        self.assertEqual(cfg.get_id(), "999")

    def test_plaintext_id_within_grace_window_is_trusted(self) -> None:
        path = os.path.join(self.base, "Deskline.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"id": "123456789"}, f)
        mtime = os.path.getmtime(path)
        cfg = self._open(id_source=lambda: "999", exe_time_source=lambda: mtime - 10)
        self.assertEqual(cfg.get_id(), "123456789")

    def test_id_generation_failure_leaves_id_empty(self) -> None:
        cfg = self._open(id_source=lambda: None)
        with self.assertLogs("deskconf.identity", level="ERROR") as cm:
            self.assertEqual(cfg.get_id(), "")
        self.assertEqual(sum("Failed to generate new id" in line for line in cm.output), 6)
        self.assertEqual(cfg.get_id_or("fallback"), "fallback")

    def test_id_source_exception_is_retried(self) -> None:
        answers = iter([RuntimeError("no nic"), None, "314159265"])

        def source():
            value = next(answers)
            if isinstance(value, Exception):
                raise value
            return value

        cfg = self._open(id_source=source)
        with self.assertLogs("deskconf.identity", level="ERROR"):
            self.assertEqual(cfg.get_id(), "314159265")

    def test_always_failing_id_source_does_not_raise(self) -> None:
        def source():
            raise RuntimeError("no nic")

        cfg = self._open(id_source=source)
        with self.assertLogs("deskconf.identity", level="ERROR"):
            self.assertEqual(cfg.get_id(), "")
            self.assertEqual(cfg.get_id(), "")

    def test_regenerated_id_equal_to_plaintext_is_still_encrypted(self) -> None:
        path = os.path.join(self.base, "Deskline.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"id": "999"}, f)
        cfg = self._open(id_source=lambda: "999", exe_time_source=lambda: 0.0)
        self.assertEqual(cfg.get_id(), "999")
        data = _raw(path)
        self.assertEqual(data["id"], "")
        self.assertTrue(data["enc_id"].startswith("00"))

    def test_update_id_picks_random_id(self) -> None:
        cfg = self._open()
        old = cfg.get_id()
        with self.assertLogs("deskconf.identity", level="INFO"):
            new = cfg.update_id()
        self.assertNotEqual(new, old)
        self.assertEqual(cfg.get_id(), new)

    def test_permanent_password_encrypted_at_rest(self) -> None:
        cfg = self._open()
        cfg.set_permanent_password("pa55word")
        data = _raw(cfg.file_path(""))
        self.assertNotEqual(data["password"], "pa55word")
        self.assertTrue(data["password"].startswith("00"))
        self.assertEqual(self._open().get_permanent_password(), "pa55word")

    def test_salt_generated_once(self) -> None:
        cfg = self._open()
        salt = cfg.get_salt()
        self.assertEqual(len(salt), 6)
        self.assertTrue(all(c in PASSWORD_CHARS for c in salt))
        self.assertEqual(cfg.get_salt(), salt)
        self.assertEqual(self._open().get_salt(), salt)

    def test_key_confirmed_false_clears_hosts(self) -> None:
        cfg = self._open()
        self.assertTrue(cfg.set_key_confirmed(True))
        self.assertTrue(cfg.set_host_key_confirmed("rs.example.org", True))
        self.assertTrue(cfg.get_host_key_confirmed("rs.example.org"))
        self.assertFalse(cfg.set_host_key_confirmed("rs.example.org", True))
        self.assertTrue(cfg.set_key_confirmed(False))
        self.assertFalse(cfg.get_key_confirmed())
        self.assertFalse(cfg.get_host_key_confirmed("rs.example.org"))
        self.assertEqual(cfg.get_identity().keys_confirmed, {})

    def test_concurrent_get_keypair_is_identical(self) -> None:
        cfg = self._open()
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            kp = cfg.get_keypair()
            with lock:
                results.append(kp)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(results), 8)
        self.assertEqual(len(set(results)), 1)

    def test_keypair_persisted_in_background(self) -> None:
        cfg = self._open()
        kp = cfg.get_keypair()
        cfg.close()
        self.assertEqual(cfg.get_identity().key_pair, kp)
        self.assertEqual(self._open().get_keypair(), kp)

    def test_identity_empty_until_keypair_exists(self) -> None:
        cfg = self._open()
        cfg.get_id()
        self.assertTrue(cfg.is_identity_empty())
        cfg.get_keypair()
        cfg.close()
        self.assertFalse(cfg.is_identity_empty())

    def test_random_id_setting_used_without_id_source(self) -> None:
        cfg = ConfigService(Settings(base_dir=self.base, random_id=True), key_material=lambda: b"k")
        self.addCleanup(cfg.close)
        value = int(cfg.get_id())
        self.assertGreaterEqual(value, ID_RANDOM_MIN)
        self.assertLess(value, ID_RANDOM_MAX)

    def test_mac_id_used_on_desktop(self) -> None:
        mac = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x2A])
        with mock.patch("deskconf.hostinfo.mac_address", return_value=mac):
            cfg = ConfigService(Settings(base_dir=self.base, random_id=False), key_material=lambda: b"k")
            self.addCleanup(cfg.close)
            self.assertEqual(cfg.get_id(), "42")


class MachineKeyTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.base = self._td.name

    def _open(self, id_source=lambda: "555") -> ConfigService:
        cfg = ConfigService(Settings(base_dir=self.base), id_source=id_source)
        self.addCleanup(cfg.close)
        return cfg

    def test_keypair_key_when_no_machine_uid(self) -> None:
        with mock.patch("deskconf.hostinfo.machine_uid", return_value=""):
            cfg = self._open()
            self.assertEqual(cfg.get_id(), "555")
            cfg.set_permanent_password("pw1")
            cfg.close()
            data = _raw(cfg.file_path(""))
            self.assertTrue(data["key_pair"][0])
            self.assertTrue(data["enc_id"].startswith("00"))
            self.assertNotEqual(data["password"], "pw1")

            again = self._open(id_source=lambda: "999")
            self.assertEqual(again.get_id(), "555")
            self.assertEqual(again.get_permanent_password(), "pw1")
            self.assertEqual(again.get_keypair(), cfg.get_keypair())

    def test_machine_uid_key(self) -> None:
        with mock.patch("deskconf.hostinfo.machine_uid", return_value="machine-a"):
            cfg = self._open()
            cfg.get_id()
            cfg.set_permanent_password("pw1")
            again = self._open(id_source=lambda: "999")
            self.assertEqual(again.get_id(), "555")
            self.assertEqual(again.get_permanent_password(), "pw1")
        with mock.patch("deskconf.hostinfo.machine_uid", return_value="machine-b"):
            moved = self._open(id_source=lambda: "777")
            self.assertEqual(moved.get_id(), "777")


if __name__ == "__main__":
    unittest.main()
