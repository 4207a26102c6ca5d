from __future__ import annotations

import argparse
import os
from collections.abc import Sequence

import uvicorn
from dotenv import load_dotenv

from site_analytics.config import project_root

APP_PATH = "site_analytics.tracking.api:app"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    env_file = project_root() / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=False)

    debug = os.getenv("ANALYTICS_DEBUG", "").strip().lower() == "true"
    p = argparse.ArgumentParser(description="Serve the beacon endpoints (/analytics, /vitals, /metrics, /collect).")
    p.add_argument("--host", default=os.getenv("ANALYTICS_API_HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("ANALYTICS_API_PORT", "8888")))
    p.add_argument("--log-level", default="debug" if debug else "info")
    p.add_argument("--reload", action="store_true", help="Enable Uvicorn reload (dev only).")
    return p.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    uvicorn.run(APP_PATH, host=args.host, port=args.port, reload=args.reload, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
