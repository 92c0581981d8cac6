#!/usr/bin/env python
"""
Production Server Entry Point

Starts the Cardlink API with Uvicorn or Gunicorn.
Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn
"""

import argparse
import os
import subprocess

import uvicorn

from cardlink.config import get_settings

APP = "cardlink.main:app"


def run_dev_server(host: str, port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        APP,
        host=host,
        port=port,
        reload=True,
        reload_dirs=["cardlink"],
        log_level="debug",
    )


def run_prod_server(host: str, port: int):
    """Run production server with Uvicorn directly."""
    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=get_settings().monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn():
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True)


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Cardlink Profile Engagement API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--host", default=settings.api_host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        os.environ.setdefault("BIND", f"{args.host}:{args.port}")
        run_gunicorn()
    else:
        run_prod_server(args.host, args.port)
