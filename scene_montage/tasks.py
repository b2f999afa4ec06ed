# tasks.py

import logging

from celery import Celery

from scene_montage.config import Settings
from scene_montage.errors import AssemblyError
from scene_montage.schemas import AssembleRequest

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


def create_celery(settings: Settings) -> Celery:
    app = Celery("scene_montage", broker=settings.celery_broker_url, backend=settings.celery_backend_url)
    app.conf.task_serializer = "json"
    app.conf.result_serializer = "json"
    app.conf.accept_content = ["json"]
    return app


celery = create_celery(Settings())


@celery.task(name="scene_montage.assemble_video")
def assemble_video_task(payload: dict):
    """
    Worker side of the celery dispatch mode. The API process has already
    validated the payload and written the pending ledger row; the worker
    builds its own orchestrator and runs the same job body.
    """
    from scene_montage.orchestrator import build_orchestrator

    orchestrator = build_orchestrator(Settings())
    try:
        spec = orchestrator.validate(AssembleRequest.model_validate(payload))
        logging.info(f"📝 Worker received job {spec.job_id}")
        result = orchestrator.run_job(spec)
        return {"job_id": result.job_id, "status": "completed", "resolution": result.format.label}
    except AssemblyError as e:
        # run_job has already recorded the failure.
        logging.error(f"❌ Worker failed job: {e}")
        return {"status": "failed", "error": str(e)}
    finally:
        orchestrator.shutdown(wait=False)
