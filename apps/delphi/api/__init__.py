"""API router registration helpers.

Routers are imported lazily inside `register_routes` so importing a submodule
(e.g. during test collection) does not pull in the whole application.
"""

from fastapi import FastAPI


def register_routes(app: FastAPI) -> None:
    """Attach all API routers (lazy imports)."""
    from delphi.api.chat import router as chat_router
    from delphi.api.realtime import router as realtime_router
    from delphi.api.system import router as system_router

    routers = [
        system_router,
        chat_router,
        realtime_router,
    ]
    for router in routers:
        app.include_router(router)
