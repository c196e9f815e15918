"""Run the API server: python -m tandem.api"""

import uvicorn

from tandem.api.dependencies import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("tandem.api.app:app", host=settings.api.host, port=settings.api.port)


if __name__ == "__main__":
    main()
