from apicore.bootstrap.composer import configure
from apicore.bootstrap.controllers import CONTROLLERS, Controller, install_controllers
from apicore.bootstrap.exception_handlers import register_exception_handlers
from apicore.bootstrap.middleware import MiddlewareChain, setup_middlewares
from apicore.bootstrap.validation import validate_startup_config

__all__ = [
    "CONTROLLERS",
    "Controller",
    "MiddlewareChain",
    "configure",
    "install_controllers",
    "register_exception_handlers",
    "setup_middlewares",
    "validate_startup_config",
]
