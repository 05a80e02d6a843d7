import argparse
import logging
import sys

import uvicorn

from .api.app import init_app
from .common.exceptions import DeckhandError
from .core.config import load_config

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point with argument parsing"""
    parser = argparse.ArgumentParser(description="Deckhand action server")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config")
    parser.add_argument("--host", help="Override bind host")
    parser.add_argument("--port", type=int, help="Override bind port")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args.config)
    except DeckhandError as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    host = args.host or config.network.host
    port = args.port or config.network.port
    app = init_app(config)
    logger.info(f"Serving on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
