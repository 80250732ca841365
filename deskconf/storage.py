#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Optional, Type, TypeVar

from deskconf import hostinfo


logger = logging.getLogger(__name__)

T = TypeVar("T")


def harden_dir(path: str) -> None:
    if not path:
        return
    os.makedirs(path, exist_ok=True)
    if sys.platform.startswith("win"):
        return
    try:
        os.chmod(path, 0o700)
    except OSError:
        pass


def harden_file(path: str) -> None:
    if not path or sys.platform.startswith("win"):
        return
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


class RecordStore:
    """Load/store typed records as one JSON file each.

    Record types provide from_dict()/to_dict(). load() never raises: a
    missing file yields the default record, a corrupt one is logged and
    also yields the default. store() writes atomically and raises on
    failure; callers decide whether that matters.
    """

    def load(self, path: str, record_type: Type[T]) -> T:
        if not os.path.isfile(path):
            return record_type.from_dict({})  # type: ignore[attr-defined]
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"{os.path.basename(path)} root is not an object")
            return record_type.from_dict(data)  # type: ignore[attr-defined]
        except Exception as e:
            logger.error("Failed to load config %s: %s: %s", path, type(e).__name__, e)
            return record_type.from_dict({})  # type: ignore[attr-defined]

    def store(self, path: str, record: Any) -> None:
        payload = record.to_dict()
        harden_dir(os.path.dirname(path) or ".")
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, path)
        harden_file(path)

    def remove(self, path: str) -> bool:
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False

    def modified_time(self, path: str) -> Optional[float]:
        return hostinfo.modified_time(path)
