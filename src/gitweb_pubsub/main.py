from __future__ import annotations
import logging
import os
import uvicorn
from gitweb_pubsub.infrastructure.config import get_settings

def main() -> None:
    """Start the uvicorn ASGI server."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    uvicorn.run(
        "gitweb_pubsub.interface.app:create_app",
        factory=True,
        host=os.environ.get("HOST", settings.host),
        port=int(os.environ.get("PORT", settings.port)),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
