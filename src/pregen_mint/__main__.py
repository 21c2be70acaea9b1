"""Run the mint server with uvicorn: ``python -m pregen_mint``."""

import uvicorn

from .config import Settings
from .logs import configure_logging
from .servers import MintServer


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.environment)
    app = MintServer(settings=settings, title="pregen-mint")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
