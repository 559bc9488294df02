# ABOUTME: Clients for external drug terminology services.
# ABOUTME: Each client wraps the raw REST endpoints of one upstream API.

from src.clients.rxnorm import RxNormClient, RxNormError

__all__ = [
    "RxNormClient",
    "RxNormError",
]
