#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from deskconf.constants import VERSION
from deskconf.service import ConfigService
from deskconf.settings import Settings


class DeskconfError(Exception):
    """Usage error reported by the command line."""


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="deskconf",
        description="Inspect and edit Deskline client configuration.",
    )
    ap.add_argument("--version", action="version", version=f"deskconf {VERSION}")
    ap.add_argument("--home", default=None, help="config directory (default: platform location or $DESKCONF_HOME)")
    ap.add_argument("--app-name", default=None, help="application name used for file names (default: Deskline)")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging to stderr")

    sub = ap.add_subparsers(dest="command")
    sub.add_parser("id", help="print the device id")
    p_get = sub.add_parser("get-option", help="print a runtime option")
    p_get.add_argument("key")
    p_set = sub.add_parser("set-option", help="set a runtime option (empty value deletes it)")
    p_set.add_argument("key")
    p_set.add_argument("value", nargs="?", default="")
    sub.add_parser("rendezvous", help="print the resolved rendezvous server and candidates")
    sub.add_parser("peers", help="list saved peer profiles, most recent first")
    p_rm = sub.add_parser("remove-peer", help="delete a saved peer profile")
    p_rm.add_argument("peer_id")
    sub.add_parser("paths", help="print config file locations")
    return ap


def run(args: argparse.Namespace, cfg: ConfigService) -> int:
    cmd = args.command
    if cmd == "id":
        peer_id = cfg.get_id()
        if not peer_id:
            raise DeskconfError("no device id could be generated")
        print(peer_id)
    elif cmd == "get-option":
        print(cfg.get_option(args.key))
    elif cmd == "set-option":
        changed = cfg.set_option(args.key, args.value)
        print("changed" if changed else "unchanged")
    elif cmd == "rendezvous":
        print(cfg.get_rendezvous_server())
        for server in cfg.get_rendezvous_servers():
            print(f"  {server}")
    elif cmd == "peers":
        for peer_id, mtime, profile in cfg.peers.list_all():
            stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(mtime))
            info = profile.info
            print(f"{peer_id} | {stamp} | {info.username}@{info.hostname} | {info.platform}")
    elif cmd == "remove-peer":
        if not cfg.peers.exists(args.peer_id):
            raise DeskconfError(f"no saved profile for {args.peer_id}")
        cfg.peers.remove(args.peer_id)
    elif cmd == "paths":
        print(
            json.dumps(
                {
                    "base_dir": cfg.resolver.base_dir(),
                    "identity": cfg.identity.path,
                    "network": cfg.network.path,
                    "local": cfg.local.path,
                    "hwcodec": cfg.hwcodec.path,
                    "lan_peers": cfg.lan_peers.path,
                    "peers": cfg.peers.directory(),
                    "log": cfg.log_path(),
                },
                indent=2,
            )
        )
    else:
        raise DeskconfError("missing command")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = Settings.from_env(base_dir=args.home, app_name=args.app_name)
    cfg = ConfigService(settings)
    try:
        return run(args, cfg)
    except DeskconfError as e:
        print(f"deskconf: {e}", file=sys.stderr)
        return 2
    finally:
        cfg.close()


if __name__ == "__main__":
    raise SystemExit(main())
