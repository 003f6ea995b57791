#!/usr/bin/env python3
"""
Launch the Book Library API with uvicorn.

Settings come from ``api.config`` (environment variables or ``.env``);
``DEBUG=true`` turns on auto-reload and development error detail.
"""

import uvicorn

from api.config import config


def main():
    """Serve the books and reviews API."""
    print(f"📚 {config.api_title} v{config.api_version}")
    print(f"📡 Listening on http://{config.host}:{config.port}")
    print(f"🗄️  Database: {config.mongodb_database}")
    print(f"📝 Logging: {config.log_level} / {config.log_format}")
    if config.debug:
        print("🛠️  Development mode: reload on, error detail in 500 responses")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=False
    )


if __name__ == "__main__":
    main()
