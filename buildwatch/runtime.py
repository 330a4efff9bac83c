"""buildwatch runtime entrypoint for container deployments.

The ``buildwatch.runtime:create_app`` Granian entrypoint builds the Falcon
application. When both ``BUILDWATCH_DATABASE_URL`` and
``BUILDWATCH_MASTERS_PATH`` are set, the app runs the polling scheduler for
its lifetime and exposes ``/status``; otherwise it starts in health-only
mode.

Configuration is driven by environment variables:

- ``BUILDWATCH_HOST``: Bind address (default ``0.0.0.0``)
- ``BUILDWATCH_PORT``: Listen port (default ``8080``)
- ``BUILDWATCH_LOG_LEVEL``: Log level (default ``INFO``)
- ``BUILDWATCH_DATABASE_URL``: SQLAlchemy async URL of the build cache
- ``BUILDWATCH_MASTERS_PATH``: YAML file listing Travis masters

Run the service directly with ``python -m buildwatch.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from buildwatch.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid BUILDWATCH_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        A polling app when the database URL and masters file are both
        configured, otherwise a health-only app.

    """
    from buildwatch.api.app import AppDependencies
    from buildwatch.api.app import create_app as _create_api_app

    database_url = os.environ.get("BUILDWATCH_DATABASE_URL")
    masters_path = os.environ.get("BUILDWATCH_MASTERS_PATH")

    if not database_url or not masters_path:
        log_info(logger, "Polling disabled; serving health probes only")
        return _create_api_app()

    from buildwatch.monitor.factory import build_service

    service = build_service(database_url, masters_path)
    return _create_api_app(
        AppDependencies(
            service=service,
            stale_after_intervals=service.monitor.config.stale_after_intervals,
        )
    )


def main() -> None:
    """Start the buildwatch runtime server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("BUILDWATCH_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("BUILDWATCH_PORT", "8080"))
    log_level_str = os.environ.get("BUILDWATCH_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid BUILDWATCH_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting buildwatch runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "buildwatch.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
