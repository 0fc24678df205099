"""FastAPI application for EKS addon management."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI

from eks_addons.routes.addons import router as addons_router
from eks_addons.settings import get_settings

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
)

app = FastAPI(
    title="EKS Addons",
    description="Create, read, update, delete and import EKS addons, "
    "reconciling their tags against provider default and ignore tag policies.",
    version="1.0.0",
)

app.include_router(addons_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
