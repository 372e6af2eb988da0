from __future__ import annotations

import uvicorn

from heartbeat.app import create_app
from heartbeat.config import load_config
from heartbeat.logs import configure_logging


def main() -> None:
    config = load_config()
    configure_logging(config.log_level, config.log_format)
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=int(config.port), log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
