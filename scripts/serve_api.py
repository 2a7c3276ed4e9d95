from __future__ import annotations

import uvicorn

from docshare.apps.api.main import create_app
from docshare.core.config import get_settings
from docshare.persistence.migrations import upgrade_to_head


def main() -> None:
    # Run the API with env-driven bind settings for compose and local development.
    settings = get_settings()
    if settings.migrate_on_start:
        # Migrations drive their own event loop, so run them before uvicorn starts one.
        upgrade_to_head(settings.database_url)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
