"""sitecms entrypoint.

Run with:
  python -m sitecms
"""

import uvicorn

from sitecms.config import Settings
from sitecms.logging_config import setup_logging


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    uvicorn.run(
        "sitecms.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
