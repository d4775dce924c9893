"""Quest Guide — launcher. Serves the JSON API with uvicorn."""

import argparse
import logging

import uvicorn

from quest_guide.app import create_app
from quest_guide.config import load_settings


def main():
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Quest Guide API server")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    parser.add_argument("--assistant-url", default=None,
                        help="Assistant service base URL (default: scripted offline guide)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.assistant_url is not None:
        settings = settings.model_copy(update={"assistant_url": args.assistant_url})

    print(f"Starting Quest Guide on http://{args.host}:{args.port} ...")
    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
