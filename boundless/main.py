from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import flows, health, portfolio
from .config import settings
from .logging_config import setup_logging

setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Boundless API",
    description="Multichain balance aggregation and liquidity flow previews",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(portfolio.router, tags=["Portfolio"])
app.include_router(flows.router, tags=["Flows"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Boundless API",
        "version": __version__,
        "description": "Multichain balance aggregation and liquidity flow previews",
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "boundless.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
