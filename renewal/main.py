# Role: FastAPI app bootstrap. Loads environment config early, registers routers, and exposes health/docs endpoints.

from fastapi import FastAPI

import renewal.config
renewal.config.load_env()

from renewal.api.chat import router as chat_router
from renewal.api.payment import router as payment_router
from renewal.api.state import router as state_router

app = FastAPI(title="Car Insurance Renewal API", version="0.1.0")
app.include_router(chat_router)
app.include_router(state_router)
app.include_router(payment_router)


@app.get("/")
def root() -> dict:
    # Role: quick discoverability for clients (where are docs/health).
    return {
        "message": "Car Insurance Renewal API is running",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
