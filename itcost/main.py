"""
Main FastAPI Application for IT cost calculations.
Provides the v1 REST API and a nightly audit retention job.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler

from itcost import __version__
from itcost.config import get_config
from itcost.models import init_db, get_db
from itcost.domain.exceptions import DomainError
from itcost.domain.services import AuditService
from itcost.api.v1 import api_router as v1_router
from itcost.api.v1.errors import status_for

logger = logging.getLogger(__name__)


app = FastAPI(
    title="IT Cost Calculation",
    description="Price IT services against a dated price list, route calculations through approval and compare them with budget/outcome ledger data",
    version=__version__
)

app.include_router(v1_router)


@app.on_event("startup")
async def startup_event():
    init_db()
    setup_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)


# Background scheduler for audit retention
scheduler: Optional[BackgroundScheduler] = None


def setup_scheduler():
    global scheduler
    config = get_config()
    if not config.audit_retention_days:
        logger.info("Audit retention disabled, scheduler not started")
        return

    scheduler = BackgroundScheduler()
    scheduler.add_job(run_audit_purge, 'cron', hour=config.audit_purge_hour, minute=0)
    scheduler.start()


def run_audit_purge():
    """Background job removing audit entries past the retention period."""
    db = next(get_db())
    try:
        AuditService(db).purge_expired()
    except Exception as e:
        db.rollback()
        logger.error(f"Audit purge failed: {e}")
    finally:
        db.close()


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "version": __version__}


# ------------ Error Handlers ------------

@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
