"""Jobs router - scheduled job status and "Run Now"."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from coachflow.core.deps import get_db
from coachflow.core.security import verify_internal_secret
from coachflow.jobs.registry import UnknownJobError, run_scheduled_job
from coachflow.schemas.scheduled import JobRunResponse, ScheduledJobRead
from coachflow.services import scheduled_job_service

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_internal_secret)])


@router.get("/scheduled", response_model=list[ScheduledJobRead])
def list_scheduled_jobs(db: Session = Depends(get_db)):
    """Scheduled jobs with their last run status and timestamp."""
    return scheduled_job_service.list_jobs(db)


@router.post("/scheduled/{job_name}/run", response_model=JobRunResponse)
def run_scheduled_job_now(job_name: str, db: Session = Depends(get_db)):
    job = scheduled_job_service.get_job(db, job_name)
    if not job:
        raise HTTPException(status_code=404, detail="Scheduled job not found")
    try:
        result = run_scheduled_job(db, job)
    except UnknownJobError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        logger.warning("Run Now failed for job %s: %s", job_name, type(exc).__name__)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return JobRunResponse(job=ScheduledJobRead.model_validate(job), result=result)
