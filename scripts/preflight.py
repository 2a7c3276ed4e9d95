from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from docshare.core.config import get_settings
from docshare.persistence.db import get_session
from docshare.persistence.migrations import current_revision, head_revision


_DEV_CURSOR_SECRET = "dev-documents-cursor-secret"


def _required_env_names() -> list[str]:
    # Only names are reported; values may be secrets.
    return ["DATABASE_URL", "CURSOR_SECRET"]


async def run_preflight() -> int:
    settings = get_settings()
    results: list[dict[str, Any]] = []

    async with get_session() as session:
        db_rev = await current_revision(session)
    head_rev = head_revision()
    results.append(
        {
            "check": "schema_at_head",
            "status": "pass" if db_rev is not None and db_rev == head_rev else "fail",
            "detail": {"db_revision": db_rev, "head_revision": head_rev},
        }
    )

    missing_env = [name for name in _required_env_names() if not os.environ.get(name)]
    results.append(
        {
            "check": "required_env_present",
            "status": "pass" if not missing_env else "fail",
            "detail": {"missing": missing_env},
        }
    )

    results.append(
        {
            "check": "cursor_secret_rotated",
            "status": "warn" if settings.cursor_secret == _DEV_CURSOR_SECRET else "pass",
            "detail": {},
        }
    )

    failed = [row for row in results if row["status"] == "fail"]
    print(json.dumps({"status": "fail" if failed else "pass", "checks": results}, indent=2, sort_keys=True))
    return 1 if failed else 0


def main() -> int:
    argparse.ArgumentParser(description="Check schema revision and required settings before rollout.").parse_args()
    return asyncio.run(run_preflight())


if __name__ == "__main__":
    sys.exit(main())
