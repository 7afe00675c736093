"""Run the server: ``python -m repogate``."""

import uvicorn

from repogate.config import settings


def main() -> None:
    uvicorn.run(
        "repogate.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
