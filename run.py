#!/usr/bin/env python3
"""
Transcode API launcher.
Production entry point: gevent-patched WSGI server in front of the Flask app.
"""
# Gevent must patch before any other imports that use socket/threading/subprocess
# (so one slow transcode never blocks other requests).
from gevent import monkey
monkey.patch_all()

import argparse
import logging

from transcoder import config


def main():
    parser = argparse.ArgumentParser(description="YouTube transcode API server")
    parser.add_argument("--host", default=config.API_HOST)
    parser.add_argument("--port", type=int, default=config.API_PORT)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from shared.api import start_api
    start_api(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
