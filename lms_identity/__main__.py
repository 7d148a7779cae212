from __future__ import annotations

import uvicorn

from .config import get_settings


def run() -> None:
    settings = get_settings()
    uvicorn.run("lms_identity.main:app", host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    run()
