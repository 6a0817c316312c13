"""
FastAPI dependencies.

Request-scoped access to application state.
"""

from fastapi import Request
from modules.slideshow.lifecycle import ProcessLifecycleManager


def get_lifecycle(request: Request) -> ProcessLifecycleManager:
    """
    Process registry owned by the running application.

    Created in the app lifespan; a fresh one is attached lazily when the app
    is used without its lifespan (e.g. a bare TestClient).
    """
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        lifecycle = ProcessLifecycleManager()
        request.app.state.lifecycle = lifecycle
    return lifecycle
