import argparse
import logging

import uvicorn

from .config import RelaySettings
from .server import create_app


def main(argv=None) -> None:
    settings = RelaySettings.from_env()
    parser = argparse.ArgumentParser(description="Run the signaling relay")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args(argv)

    settings.host = args.host
    settings.port = args.port
    settings.log_level = args.log_level.lower()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
