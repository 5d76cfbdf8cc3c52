from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from airsense_server.adapters.api.routes import router
from airsense_server.bridge import Bridge, build_bridge


def create_app(bridge_factory: Optional[Callable[[], Bridge]] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bridge = (bridge_factory or build_bridge)()
        app.state.bridge = bridge
        bridge.start()
        try:
            yield
        finally:
            bridge.stop()

    app = FastAPI(title="AirSense", lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
