"""buildwatch HTTP API layer.

This package provides the Falcon ASGI application exposing health probes
and poll freshness for the build monitor.

Usage
-----
Create the application::

    from buildwatch.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # polling mode with /status
"""

from buildwatch.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
