#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from deskconf.locks import ReadWriteLock
from deskconf.storage import RecordStore


logger = logging.getLogger(__name__)

R = TypeVar("R")


def get_option(options: Dict[str, str], key: str) -> str:
    return options.get(key, "")


def set_option(options: Dict[str, str], key: str, value: str) -> bool:
    """Update an options map in place; an empty value deletes the key.

    Returns True only when the map actually changed.
    """
    value = "" if value is None else str(value)
    if not value:
        if key in options:
            del options[key]
            return True
        return False
    if options.get(key) == value:
        return False
    options[key] = value
    return True


class ConfigDomain(Generic[R]):
    """One process-wide cached record backed by one file.

    The record is loaded on first use. after_load(record) may fix the record
    up in place (decrypt fields, repair ids) and returns True when the fixed
    record must be written back. before_store(copy) turns a copy into its at
    rest form and returns it. Writes only happen when the value changed, and
    write failures are logged, never raised: the cached value stays
    authoritative for the life of the process.
    """

    def __init__(
        self,
        name: str,
        path: str,
        record_type: Type[R],
        store: RecordStore,
        after_load: Optional[Callable[[R], bool]] = None,
        before_store: Optional[Callable[[R], R]] = None,
    ) -> None:
        self.name = name
        self.path = path
        self.record_type = record_type
        self._store = store
        self._after_load = after_load
        self._before_store = before_store
        self._lock = ReadWriteLock()
        self._value: Optional[R] = None
        self._loaded = False

    def _load_locked(self) -> None:
        value = self._store.load(self.path, self.record_type)
        needs_store = False
        if self._after_load is not None:
            needs_store = bool(self._after_load(value))
        self._value = value
        self._loaded = True
        if needs_store:
            self._write_locked(value)

    def _write_locked(self, value: R) -> None:
        try:
            out = copy.deepcopy(value)
            if self._before_store is not None:
                out = self._before_store(out)
            self._store.store(self.path, out)
        except Exception as e:
            logger.error("Failed to store %s config: %s: %s", self.name, type(e).__name__, e)

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock.write():
            if not self._loaded:
                self._load_locked()

    def get(self) -> R:
        self._ensure_loaded()
        with self._lock.read():
            return copy.deepcopy(self._value)

    def read(self, fn: Callable[[R], Any]) -> Any:
        """Run fn on the cached record under the read lock. fn must not mutate it."""
        self._ensure_loaded()
        with self._lock.read():
            return fn(self._value)

    def set(self, value: R) -> bool:
        self._ensure_loaded()
        with self._lock.write():
            if value == self._value:
                return False
            self._value = copy.deepcopy(value)
            self._write_locked(self._value)
            return True

    def mutate(self, fn: Callable[[R], Any]) -> bool:
        """Apply fn to a copy of the record; persist only if the copy changed."""
        self._ensure_loaded()
        with self._lock.write():
            candidate = copy.deepcopy(self._value)
            fn(candidate)
            if candidate == self._value:
                return False
            self._value = copy.deepcopy(candidate)
            self._write_locked(candidate)
            return True

    def store(self) -> None:
        self._ensure_loaded()
        with self._lock.write():
            self._write_locked(self._value)

    def refresh(self) -> None:
        with self._lock.write():
            self._load_locked()
        logger.debug("%s config refreshed", self.name)

    def remove_file(self) -> bool:
        try:
            return self._store.remove(self.path)
        except OSError as e:
            logger.error("Failed to remove %s config: %s", self.name, e)
            return False

    def get_option(self, key: str, attr: str = "options") -> str:
        return self.read(lambda rec: get_option(getattr(rec, attr), key))

    def set_option(self, key: str, value: str, attr: str = "options") -> bool:
        return self.mutate(lambda rec: set_option(getattr(rec, attr), key, value))
