import logging
import sys

import uvicorn

from apicore import create_app
from apicore.config import get_config
from apicore.errors import FatalStartupAbort, StartupError
from apicore.registry import ServiceRegistry
from apicore.server import ServerSettings

logger = logging.getLogger("apicore.main")

if __name__ == "__main__":
    registry = ServiceRegistry()
    try:
        app = create_app(get_config(), registry=registry)
    except FatalStartupAbort as abort:
        print(f"Fatal: {abort}", file=sys.stderr)
        raise SystemExit(abort.exit_code)
    except StartupError:
        logger.exception("startup_failed")
        raise SystemExit(1)

    server = registry.get(ServerSettings)
    uvicorn.run(app, host=server.host, port=server.port)
