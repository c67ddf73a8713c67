"""Run the API server: ``python -m shop``.

Server settings come from the environment: ``PORT``, ``UVICORN_WORKERS``
and ``LOG_LEVEL``.
"""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "shop.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        workers=int(os.getenv("UVICORN_WORKERS", str(max(2, (os.cpu_count() or 1))))),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
