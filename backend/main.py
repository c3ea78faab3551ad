"""
MRMS Proxy Server

FastAPI application mounting the MRMS proxy router at /api/mrms.

Run:
    cd backend
    python main.py
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mrms_proxy import MrmsProxy, ProxyConfig, create_router

logger = logging.getLogger(__name__)


def create_app(
    proxy: Optional[MrmsProxy] = None,
    env_file: Optional[str] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        proxy: Preconfigured proxy; built from the environment when omitted
        env_file: .env path to load first; searched for upward when omitted
    """
    if proxy is None:
        # .env values fill in variables the process environment does not set
        load_dotenv(env_file)
        proxy = MrmsProxy(ProxyConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await proxy.aclose()

    app = FastAPI(title="MRMS Proxy", lifespan=lifespan)
    app.state.proxy = proxy

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(create_router(proxy))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"ok": True, "ts": int(time.time() * 1000)}

    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    config = ProxyConfig.from_env()
    logger.info(f"MRMS proxy listening on port {config.port}")
    uvicorn.run(create_app(MrmsProxy(config)), host="0.0.0.0", port=config.port)
