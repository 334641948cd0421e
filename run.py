"""Application entry point.

Runs the CoachDesk API with uvicorn. HOST and PORT can be set in the
environment; reload is on outside production.
"""

import os

import uvicorn

from app.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "localhost"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENVIRONMENT != "production",
    )
