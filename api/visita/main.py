"""FastAPI application entry point."""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from visita.api import audit_logs, churches, fields, notifications, pending_changes
from visita.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="VISITA Church Profiles", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(churches.router, prefix="/churches", tags=["churches"])
# Staged edit review queue (paths span /churches/{id}/pending-changes and /pending-changes)
app.include_router(pending_changes.router, tags=["pending-changes"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit-logs"])
app.include_router(fields.router, prefix="/fields", tags=["fields"])


@app.get("/")
def root():
    return {"message": "VISITA Church Profiles API", "version": "1.0.0"}


@app.get("/health")
def health():
    return {"status": "healthy"}
