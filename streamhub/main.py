"""streamhub FastAPI application entrypoint."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from .api.stream import router as stream_router
from .core.pubsub import create_pubsub
from .util.config import PubSubConfig

app = FastAPI(title="streamhub", version="0.1.0")
app.state.pubsub = create_pubsub(PubSubConfig.from_env())

app.include_router(stream_router, prefix="/api")


@app.get("/healthz")
def healthcheck() -> dict[str, str]:
    """Basic health endpoint for readiness probes."""
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    logging.basicConfig(level=os.getenv("STREAMHUB_LOG_LEVEL", "INFO").upper())
    uvicorn.run(app, host=os.getenv("STREAMHUB_HOST", "127.0.0.1"), port=int(os.getenv("STREAMHUB_PORT", "8000")))


if __name__ == "__main__":
    main()
