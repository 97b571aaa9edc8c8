import uuid
import logging
from fastapi import APIRouter, HTTPException, BackgroundTasks
from config import get_settings
from services.llm_service import get_llm_service
from services.publisher import Publisher, PackageNotFoundError
from agents.orchestrator import PipelineOrchestrator
from db.database import async_session
from db.models import PackageRecord, StepLog
from models.package import Idea
from sqlalchemy import select

logger = logging.getLogger("api.packages")
router = APIRouter(prefix="/api/v1", tags=["packages"])

# In-memory store for pipeline progress events (per run_id)
run_events: dict[str, list[dict]] = {}
run_results: dict[str, dict] = {}


async def run_ideas_pipeline(run_id: str, ideas: list[Idea]):
    """Background task: generate and publish every idea in order."""
    orchestrator = PipelineOrchestrator(get_llm_service(), get_settings())

    events = run_events.setdefault(run_id, [])

    async def on_progress(event):
        event["run_id"] = run_id
        events.append(event)

    orchestrator.on_progress(on_progress)

    try:
        run_results[run_id] = await orchestrator.run(ideas)
    except Exception as e:
        logger.error(f"Run {run_id} failed: {e}")
        events.append({"stage": "error", "status": "failed", "detail": str(e)})


def _record_to_dict(record: PackageRecord) -> dict:
    return {
        "name": record.name,
        "description": record.description,
        "idea_prompt": record.idea_prompt,
        "functions": record.functions or [],
        "package_dir": record.package_dir,
        "state": record.state,
        "last_completed_state": record.last_completed_state,
        "remote_url": record.remote_url,
        "error": record.error,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


@router.post("/ideas")
async def submit_ideas(ideas: list[Idea], background_tasks: BackgroundTasks):
    """Queue a run that turns each idea into published packages."""
    if not ideas:
        raise HTTPException(status_code=400, detail="Provide at least one idea")

    run_id = str(uuid.uuid4())
    run_events[run_id] = []
    background_tasks.add_task(run_ideas_pipeline, run_id, ideas)
    return {"run_id": run_id, "status": "processing", "ideas": len(ideas)}


@router.get("/runs/{run_id}")
async def get_run(run_id: str):
    """Progress events and, once finished, the run summary."""
    if run_id not in run_events:
        raise HTTPException(status_code=404, detail="Run not found")
    return {
        "run_id": run_id,
        "events": run_events[run_id],
        "result": run_results.get(run_id),
    }


@router.get("/packages")
async def list_packages():
    """List tracked packages, newest first."""
    async with async_session() as session:
        result = await session.execute(
            select(PackageRecord).order_by(PackageRecord.created_at.desc()).limit(100)
        )
        return [_record_to_dict(p) for p in result.scalars().all()]


@router.get("/packages/{name}")
async def get_package(name: str):
    """Package state and its publish step history."""
    async with async_session() as session:
        record = await session.get(PackageRecord, name)
        if not record:
            raise HTTPException(status_code=404, detail="Package not found")
        steps = (await session.execute(
            select(StepLog).where(StepLog.package_name == name).order_by(StepLog.created_at)
        )).scalars().all()
        data = _record_to_dict(record)
        data["steps"] = [
            {
                "step": s.step,
                "status": s.status,
                "error": s.error_message,
                "time": s.execution_time,
            }
            for s in steps
        ]
        return data


@router.post("/packages/{name}/publish")
async def resume_publish(name: str):
    """Resume a package's publish chain after its last completed step."""
    publisher = Publisher(get_settings())
    try:
        published = await publisher.publish(name)
    except PackageNotFoundError:
        raise HTTPException(status_code=404, detail="Package not found")
    return {"name": name, "published": published}
