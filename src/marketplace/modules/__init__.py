"""Feature modules with auto-discovery."""

import logging
from importlib import import_module
from pathlib import Path

from fastapi import APIRouter


logger = logging.getLogger(__name__)


def discover_modules() -> list[APIRouter]:
    """Collect the ``router`` of every feature package in this directory.

    Returns:
        Routers in package name order
    """
    modules_dir = Path(__file__).parent
    routers: list[APIRouter] = []

    for path in sorted(modules_dir.iterdir()):
        if not path.is_dir() or path.name.startswith("_"):
            continue
        module = import_module(f"marketplace.modules.{path.name}")
        router = getattr(module, "router", None)
        if router is not None:
            routers.append(router)
            logger.info("Loaded module: %s", path.name)

    return routers
