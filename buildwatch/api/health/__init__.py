"""Health, readiness and poll-status resources.

Usage
-----
Import resources for route registration::

    from buildwatch.api.health.resources import HealthResource, ReadyResource
"""
