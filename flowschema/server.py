"""Logging setup and the uvicorn runner."""

import logging
import sys
from typing import Any, Dict, Optional, TextIO

import structlog
import uvicorn
from rich.console import Console
from rich.panel import Panel

from flowschema.config import settings

logger = structlog.get_logger()
console = Console()


def setup_logging(
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
    json_logs: Optional[bool] = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Level defaults to ``settings.log_level`` and output to stdout. JSON lines
    are rendered in production, console output elsewhere. The CLI passes
    stderr so that machine-readable output on stdout stays clean.
    """
    if json_logs is None:
        json_logs = settings.is_production

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_uvicorn_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: Optional[bool] = None,
    workers: Optional[int] = None,
) -> Dict[str, Any]:
    """Uvicorn options from settings, with explicit overrides taking precedence."""
    reload = settings.reload if reload is None else reload
    reload = reload and settings.is_development
    return {
        "app": "flowschema.main:app",
        "host": host or settings.host,
        "port": port or settings.port,
        "reload": reload,
        "workers": 1 if reload else (workers or settings.workers),
        "log_level": settings.log_level.lower(),
        "access_log": settings.is_development,
        "server_header": False,
    }


def display_startup_info(config: Dict[str, Any]) -> None:
    base_url = f"http://{config['host']}:{config['port']}"
    sources = ", ".join(settings.plugin_paths) or "bundled descriptors"
    lines = [
        f"Environment: {settings.environment}",
        f"Listening: {base_url} ({config['workers']} worker(s), reload={config['reload']})",
        f"Descriptors: {sources}",
        f"Package prefix: {settings.default_package}",
        f"Unknown parameters: {settings.unknown_parameter_policy}",
        "",
        f"Validate: POST {base_url}/api/v1/validate/workflow",
        f"Nodes:    GET  {base_url}/api/v1/nodes",
        f"Health:   GET  {base_url}/health",
    ]
    if settings.is_development:
        lines.append(f"Docs:     GET  {base_url}/docs")

    console.print(Panel("\n".join(lines), title=f"{settings.app_name} {settings.app_version}", border_style="blue"))


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: Optional[bool] = None,
    workers: Optional[int] = None,
) -> None:
    """Configure logging and serve the API until interrupted."""
    setup_logging()
    config = create_uvicorn_config(host=host, port=port, reload=reload, workers=workers)
    display_startup_info(config)

    try:
        uvicorn.run(**config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error("Server error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run_server()
