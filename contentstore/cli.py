# -*- coding: utf-8 -*-
"""Command line entry point: ``content-store``."""

import argparse
import logging
import sys

import uvicorn

from .__meta__ import __version__
from .app import create_app
from .config import Config
from .errors import ConfigurationError, StorageError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-store",
        description="Serve a content-addressable file store over HTTP.",
    )
    parser.add_argument("--storage-dir", dest="storage_root",
                        help="directory holding stored objects "
                             "(env CONTENT_STORE_STORAGE_DIR, default ./data)")
    parser.add_argument("--tmp-dir", dest="tmp_root",
                        help="directory for staging files "
                             "(env CONTENT_STORE_TMP_DIR, default system temp)")
    parser.add_argument("--algorithm",
                        help="hash algorithm, e.g. sha256, md5, blake3")
    parser.add_argument("--encoding", choices=["hex", "base32"],
                        help="digest encoding used for object names")
    parser.add_argument("--name", help="service name")
    parser.add_argument("--host", help="bind address")
    parser.add_argument("--port", type=int, help="bind port")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error"])
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    try:
        config = Config.from_env(
            storage_root=args.storage_root,
            tmp_root=args.tmp_root,
            algorithm=args.algorithm,
            encoding=args.encoding,
            name=args.name,
            host=args.host,
            port=args.port,
        )
        app = create_app(config)
    except (ConfigurationError, StorageError) as exc:
        logging.getLogger(__name__).error("Cannot start: %s", exc)
        return 2

    uvicorn.run(app, host=config.host, port=config.port,
                log_level=args.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
