"""
Drives an assembly job end to end.

validate -> allocate workspace -> fetch assets -> probe -> plan -> run stages
-> upload -> publish status record, with the workspace removed no matter how
the job ends.
"""

import json
import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from scene_montage.assets import AssetResolver
from scene_montage.config import Settings
from scene_montage.database import create_session_factory, init_database
from scene_montage.domain import JobSpec, JobStatus, RenderResult, Scene, StatusRecord, utcnow
from scene_montage.errors import (
    DuplicateJob,
    InvalidPayload,
    ProbeFailure,
    StorageError,
    UploadFailure,
)
from scene_montage.executor import ProcessExecutor
from scene_montage.formats import classify
from scene_montage.models import Job
from scene_montage.planner import CompositionPlanner, Stage, StagePlan
from scene_montage.probe import MediaProber
from scene_montage.schemas import AssembleRequest
from scene_montage.storage import BlobStore, build_blob_store
from scene_montage.subtitles import sanitize_subtitle_file
from scene_montage.workspace import WorkspaceManager

_OUTPUT_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
IN_FLIGHT = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


def validate_output_name(name: Optional[str], allowed_extensions: Sequence[str], max_length: int = 100) -> str:
    """Return the output name unchanged if it is safe to use as a file and blob key."""
    if not name or not name.strip():
        raise InvalidPayload("outputFile is required.")
    if "/" in name or "\\" in name:
        raise InvalidPayload("outputFile must not contain path separators.")
    extension = Path(name).suffix.lower()
    if extension not in {ext.lower() for ext in allowed_extensions}:
        allowed = ", ".join(allowed_extensions)
        raise InvalidPayload(f"outputFile must end with one of: {allowed}.")
    if len(name) > max_length or not _OUTPUT_NAME.match(name):
        raise InvalidPayload("outputFile contains unsupported characters.")
    return name


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class JobOrchestrator:
    """Accepts jobs, runs them, and records exactly one terminal status per run."""

    def __init__(
        self,
        settings: Settings,
        store: BlobStore,
        session_factory,
        executor: Optional[ProcessExecutor] = None,
        prober: Optional[MediaProber] = None,
        resolver: Optional[AssetResolver] = None,
        planner: Optional[CompositionPlanner] = None,
    ):
        self.settings = settings
        self.store = store
        self.sessions = session_factory
        self.executor = executor or ProcessExecutor()
        self.prober = prober or MediaProber(self.executor, settings.ffprobe_cmd, settings.probe_timeout)
        self.resolver = resolver or AssetResolver(store, settings.download_workers, settings.download_timeout)
        self.planner = planner or CompositionPlanner(settings)
        self._pool = ThreadPoolExecutor(max_workers=settings.job_workers, thread_name_prefix="job")
        self._lock = threading.Lock()
        self._active = set()
        self._futures: Dict[str, Future] = {}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, request: AssembleRequest) -> JobSpec:
        if not request.scenes:
            raise InvalidPayload("scenes must be a non-empty list.")

        scenes: List[Scene] = []
        for index, scene in enumerate(request.scenes):
            if not _present(scene.image) or not _present(scene.narration):
                raise InvalidPayload(f"Scene {index} needs both an image and a narration.")
            scenes.append(Scene(image=scene.image, narration=scene.narration))

        output_name = validate_output_name(
            request.output_file, self.settings.allowed_extensions, self.settings.max_name_length
        )
        return JobSpec(
            job_id=output_name,
            output_name=output_name,
            scenes=tuple(scenes),
            music=request.music if _present(request.music) else None,
            subtitle=request.subtitle if _present(request.subtitle) else None,
            mix_policy=request.mix_policy or self.settings.mix_policy,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def submit(self, request: AssembleRequest) -> str:
        """Validate and schedule a job; returns its id without waiting for it."""
        spec = self.validate(request)

        if self.settings.dispatch_mode == "celery":
            # Imported here: the task module builds its own orchestrator.
            from scene_montage.tasks import assemble_video_task

            # No shared in-process state with the workers: the ledger row is the lock.
            self._record_pending(spec, exclusive=True)
            assemble_video_task.delay(request.model_dump())
            logging.info(f"✨ Job {spec.job_id} queued for a Celery worker")
            return spec.job_id

        self._reserve(spec.job_id)
        try:
            self._record_pending(spec)
            future = self._pool.submit(self._run_reserved, spec)
        except Exception:
            self._release(spec.job_id)
            raise
        with self._lock:
            self._futures = {k: f for k, f in self._futures.items() if not f.done()}
            self._futures[spec.job_id] = future
        logging.info(f"✨ Job {spec.job_id} accepted with {len(spec.scenes)} scenes")
        return spec.job_id

    def run(self, request: AssembleRequest) -> RenderResult:
        """Validate and run a job on the calling thread."""
        spec = self.validate(request)
        self._reserve(spec.job_id)
        try:
            self._record_pending(spec)
            return self.run_job(spec)
        finally:
            self._release(spec.job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> RenderResult:
        """Block until a job submitted to this orchestrator ends; re-raises its error."""
        with self._lock:
            future = self._futures.get(job_id)
        if future is None:
            raise KeyError(job_id)
        return future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def _reserve(self, job_id: str) -> None:
        with self._lock:
            if job_id in self._active:
                raise DuplicateJob(job_id)
            self._active.add(job_id)

    def _release(self, job_id: str) -> None:
        with self._lock:
            self._active.discard(job_id)

    def _run_reserved(self, spec: JobSpec) -> RenderResult:
        try:
            return self.run_job(spec)
        finally:
            self._release(spec.job_id)

    # ------------------------------------------------------------------
    # Job body
    # ------------------------------------------------------------------

    def run_job(self, spec: JobSpec) -> RenderResult:
        """Run the pipeline and record its outcome. Pipeline errors are re-raised after recording."""
        self._update_job(spec.job_id, status=JobStatus.RUNNING.value, started_at=utcnow())
        logging.info(f"📝 Job {spec.job_id} running")
        workspace = WorkspaceManager(self.settings.workspace_root, self.settings.max_name_length)
        try:
            try:
                result = self._render(spec, workspace)
            except Exception as e:
                error = str(e) or e.__class__.__name__
                logging.error(f"❌ Job {spec.job_id} failed: {error}")
                self._finish(spec, StatusRecord.failed(spec.output_name, error))
                raise
            self._finish(spec, StatusRecord.completed(result))
        finally:
            # Only after the terminal status has been recorded.
            workspace.destroy()

        logging.info(f"✅ Job {spec.job_id} completed: {result.format.label}, {result.duration:.2f}s")
        return result

    def _render(self, spec: JobSpec, workspace: WorkspaceManager) -> RenderResult:
        workspace.allocate()
        assets = self.resolver.resolve(workspace, spec.asset_kinds())
        paths = {name: asset.path for name, asset in assets.items()}

        durations: Dict[str, float] = {}
        scenes = []
        for scene in spec.scenes:
            if scene.narration not in durations:
                durations[scene.narration] = self.prober.audio_duration(paths[scene.narration])
            scenes.append(scene.with_duration(durations[scene.narration]))

        warnings: List[str] = []
        first_image = spec.scenes[0].image
        dimensions = self.prober.image_dimensions(paths[first_image])
        if not dimensions.measured:
            fallback = f"{dimensions.width}x{dimensions.height}"
            if self.settings.default_format_policy == "abort":
                raise ProbeFailure(first_image, "image dimensions could not be measured")
            if self.settings.default_format_policy == "warn":
                warnings.append(f"image dimensions could not be measured; defaulted to {fallback}")
        fmt = classify(dimensions.width, dimensions.height)

        subtitles = None
        if spec.subtitle:
            subtitles = sanitize_subtitle_file(paths[spec.subtitle], workspace.artifact("captions.srt"))

        plan = self.planner.plan(
            workspace,
            scenes,
            paths,
            fmt,
            output_suffix=Path(spec.output_name).suffix.lower(),
            music=paths[spec.music] if spec.music else None,
            subtitles=subtitles,
            mix_policy=spec.mix_policy,
        )
        self._execute_plan(workspace, plan)
        self._upload(spec.output_name, workspace.artifact(plan.final_output))

        return RenderResult(
            job_id=spec.job_id,
            output_name=spec.output_name,
            format=fmt,
            duration=sum(scene.duration for scene in scenes),
            warnings=warnings,
        )

    def _execute_plan(self, workspace: WorkspaceManager, plan: StagePlan) -> None:
        for stage in plan.stages:
            for name, text in stage.files:
                workspace.artifact(name).write_text(text, encoding="utf-8")

        clips = plan.clip_stages
        if clips:
            workers = min(self.settings.render_workers, len(clips))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="clip") as pool:
                futures = [pool.submit(self._run_stage, stage) for stage in clips]
                try:
                    for future in as_completed(futures):
                        future.result()
                except Exception:
                    for future in futures:
                        future.cancel()
                    raise

        # Concat, mix and burn-in each consume the previous stage's output.
        for stage in plan.sequential_stages:
            self._run_stage(stage)

    def _run_stage(self, stage: Stage) -> None:
        logging.info(f"▶️  Stage {stage.name} -> {stage.output}")
        self.executor.run(self.settings.ffmpeg_cmd, stage.args, timeout=stage.timeout)

    def _upload(self, name: str, path: Path) -> None:
        logging.info(f"⬆️  Uploading {name}")
        try:
            self.store.upload(name, path, timeout=self.settings.upload_timeout)
        except StorageError as e:
            raise UploadFailure(name, str(e)) from e

    # ------------------------------------------------------------------
    # Status records and the job ledger
    # ------------------------------------------------------------------

    def _finish(self, spec: JobSpec, record: StatusRecord) -> None:
        body = json.dumps(record.to_dict()).encode("utf-8")
        try:
            self.store.upload(spec.status_key, body, timeout=self.settings.upload_timeout)
            logging.info(f"🗒️  Status '{record.status.value}' written to {spec.status_key}")
        except StorageError as e:
            logging.error(f"Could not publish status record {spec.status_key}: {e}")

        self._update_job(
            spec.job_id,
            status=record.status.value,
            resolution=record.resolution,
            duration=record.duration,
            error=record.error,
            warnings_json=json.dumps(record.warnings) if record.warnings else None,
            finished_at=record.timestamp,
        )

    def _record_pending(self, spec: JobSpec, exclusive: bool = False) -> None:
        """
        Write the pending row in a single transaction. With exclusive=True the
        write only succeeds when no pending or running row exists for the id;
        losing that race (or the insert race) raises DuplicateJob.
        """
        row = {
            "status": JobStatus.PENDING.value,
            "resolution": None,
            "duration": None,
            "error": None,
            "warnings_json": None,
            "created_at": utcnow(),
            "started_at": None,
            "finished_at": None,
        }
        db = self.sessions()
        try:
            query = db.query(Job).filter(Job.id == spec.job_id)
            if exclusive:
                query = query.filter(Job.status.notin_(IN_FLIGHT))
            updated = query.update(row, synchronize_session=False)
            if not updated:
                if exclusive and db.query(Job.id).filter(Job.id == spec.job_id).first():
                    raise DuplicateJob(spec.job_id)
                db.add(Job(id=spec.job_id, **row))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateJob(spec.job_id) from e
        finally:
            db.close()

    def _update_job(self, job_id: str, **fields) -> None:
        db = self.sessions()
        try:
            job = db.query(Job).filter(Job.id == job_id).first()
            if job is None:
                job = Job(id=job_id)
                db.add(job)
            for key, value in fields.items():
                setattr(job, key, value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logging.error(f"Could not update ledger row for job {job_id}: {e}")
        finally:
            db.close()

    def job_status(self, job_id: str) -> Optional[Job]:
        db = self.sessions()
        try:
            job = db.query(Job).filter(Job.id == job_id).first()
            if job is not None:
                db.expunge(job)
            return job
        finally:
            db.close()


def build_orchestrator(settings: Settings) -> JobOrchestrator:
    """Wire an orchestrator from settings: ledger, blob store and default collaborators."""
    engine, session_factory = create_session_factory(settings.database_url)
    init_database(engine)
    return JobOrchestrator(settings, build_blob_store(settings), session_factory)
