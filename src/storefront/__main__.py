"""Serve the API with uvicorn: ``python -m storefront`` or ``storefront``."""

import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run("storefront.api:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
