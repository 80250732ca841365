#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import getpass
import os
import subprocess
import sys
import uuid
from typing import Optional


MACHINE_ID_FILES = ("/etc/machine-id", "/var/lib/dbus/machine-id")


def modified_time(path: str) -> Optional[float]:
    try:
        return os.path.getmtime(path)
    except OSError:
        return None


def exe_time() -> float:
    """Build time of the running program, approximated by its file mtime."""
    candidates = []
    if getattr(sys, "frozen", False):
        candidates.append(sys.executable)
    if sys.argv and sys.argv[0]:
        candidates.append(os.path.abspath(sys.argv[0]))
    candidates.append(os.path.abspath(__file__))
    for path in candidates:
        ts = modified_time(path)
        if ts is not None:
            return ts
    return 0.0


def mac_address() -> Optional[bytes]:
    node = uuid.getnode()
    # uuid falls back to a random node with the multicast bit set.
    if (node >> 40) & 0x01:
        return None
    return node.to_bytes(6, "big")


def _machine_uid_windows() -> str:
    try:
        import winreg

        with winreg.OpenKey(
            winreg.HKEY_LOCAL_MACHINE,
            r"SOFTWARE\Microsoft\Cryptography",
            0,
            winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
        ) as key:
            value, _kind = winreg.QueryValueEx(key, "MachineGuid")
            return str(value or "").strip()
    except Exception:
        return ""


def _machine_uid_macos() -> str:
    try:
        out = subprocess.run(
            ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        ).stdout
    except Exception:
        return ""
    for line in out.splitlines():
        if "IOPlatformUUID" in line:
            parts = line.split('"')
            if len(parts) >= 4:
                return parts[3].strip()
    return ""


def machine_uid() -> str:
    """Stable per-installation machine identifier, or "" when unavailable."""
    if sys.platform.startswith("win"):
        return _machine_uid_windows()
    if sys.platform == "darwin":
        return _machine_uid_macos()
    for path in MACHINE_ID_FILES:
        try:
            with open(path, "r", encoding="utf-8") as f:
                value = f.read().strip()
            if value:
                return value
        except OSError:
            continue
    return ""


def current_user() -> str:
    try:
        return getpass.getuser()
    except Exception:
        return ""
