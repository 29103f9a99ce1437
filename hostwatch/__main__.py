"""Run the Hostwatch API server."""

import uvicorn

from hostwatch.core.settings import settings


def main() -> None:
    uvicorn.run(
        "hostwatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
