"""
SalesDesk - Services Package

Application-level services composed from the auth, audit and admin
layers. Routes reach them through the container on app.state.
"""

from salesdesk.services.container import ServiceContainer, build_container
from salesdesk.services.stats import StatsService, TTLCache
from salesdesk.services.sweeper import SweepReport, Sweeper


__all__ = [
    "ServiceContainer",
    "build_container",
    "StatsService",
    "TTLCache",
    "Sweeper",
    "SweepReport",
]
