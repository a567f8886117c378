"""
Background comparison scheduling
Runs independent diff comparisons concurrently, tracked by run id
"""

import atexit
import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple, Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore

from visual_diff import VisualDiffEngine, DiffConfig, DiffResult
from visual_diff.normalizer import ImageSource
from utils.timestamp_utils import generate_filename_timestamp, utc_now

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('pending', 'running')


class ComparisonJob:
    """Registry entry for one scheduled comparison"""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.status = 'pending'
        self.stage = None
        self.result: Optional[DiffResult] = None
        self.error: Optional[BaseException] = None
        self.finished_at: Optional[datetime] = None
        self.done = threading.Event()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'status': self.status,
            'stage': self.stage.value if self.stage else None,
            'error': str(self.error) if self.error else None,
            'result': self.result.to_dict() if self.result else None,
        }


class ComparisonScheduler:
    """
    Schedules comparisons on a thread pool, one job per run id

    A run id that is already pending or running cannot be scheduled again
    until it finishes. Each job owns its own images and buffers; the shared
    engine only carries read-only configuration.
    """

    def __init__(self, engine: Optional[VisualDiffEngine] = None, config: Optional[DiffConfig] = None):
        self.engine = engine or VisualDiffEngine(config)
        self.jobs: Dict[str, ComparisonJob] = {}
        self._lock = threading.Lock()

        executors = {
            'default': ThreadPoolExecutor(self.engine.config.max_workers)
        }

        job_defaults = {
            'coalesce': False,
            'max_instances': 1
        }

        self.scheduler = BackgroundScheduler(
            jobstores={'default': MemoryJobStore()},
            executors=executors,
            job_defaults=job_defaults
        )

        # Setup logging
        logging.getLogger('apscheduler').setLevel(logging.WARNING)

        # Start scheduler
        self.scheduler.start()
        atexit.register(self.shutdown)

    def generate_run_id(self) -> str:
        return generate_filename_timestamp()

    def schedule_comparison(self, run_id: str, baseline: ImageSource, candidate: ImageSource,
                            output_dir: Optional[str] = None) -> bool:
        """
        Schedule an immediate comparison

        Args:
            run_id: Identifier of the run
            baseline: Baseline image source
            candidate: Candidate image source
            output_dir: Output directory override

        Returns:
            bool: False if a job with this run id is already pending or running
        """
        with self._lock:
            existing = self.jobs.get(run_id)
            if existing and existing.status in ACTIVE_STATUSES:
                logger.warning(f"Cannot schedule comparison {run_id}: job is already {existing.status}")
                return False
            job = ComparisonJob(run_id)
            self.jobs[run_id] = job

        try:
            self.scheduler.add_job(
                func=self._comparison_job,
                args=[job, baseline, candidate, output_dir],
                id=f"compare_{run_id}",
                name=f"Compare {run_id}",
                misfire_grace_time=None,
                replace_existing=True
            )
        except Exception as e:
            logger.error(f"Failed to schedule comparison {run_id}: {str(e)}")
            with self._lock:
                self.jobs.pop(run_id, None)
            raise

        logger.info(f"Scheduled comparison job {run_id}")
        return True

    def _comparison_job(self, job: ComparisonJob, baseline: ImageSource, candidate: ImageSource,
                        output_dir: Optional[str]):
        job.status = 'running'

        def track(stage):
            job.stage = stage

        try:
            job.result = self.engine.compare(baseline, candidate, output_dir, progress=track)
            job.status = 'completed'
        except Exception as e:
            logger.error(f"Comparison job {job.run_id} failed: {str(e)}")
            job.error = e
            job.status = 'failed'
        finally:
            job.finished_at = utc_now()
            job.done.set()

    def get_job_status(self, run_id: str) -> Dict[str, Any]:
        """
        Get the status of a comparison job

        Returns:
            dict: Job status information
        """
        with self._lock:
            job = self.jobs.get(run_id)
        if job is None:
            return {'run_id': run_id, 'status': 'not_scheduled'}
        return job.to_dict()

    def wait(self, run_id: str, timeout: Optional[float] = None) -> bool:
        """Block until the job finishes; False on timeout or unknown run id"""
        with self._lock:
            job = self.jobs.get(run_id)
        if job is None:
            return False
        return job.done.wait(timeout)

    def get_result(self, run_id: str) -> Optional[DiffResult]:
        """
        Result of a finished job

        Raises:
            The job's exception if the comparison failed
        """
        with self._lock:
            job = self.jobs.get(run_id)
        if job is None or not job.done.is_set():
            return None
        if job.error is not None:
            raise job.error
        return job.result

    def forget(self, run_id: str) -> bool:
        """
        Drop a finished job from the registry

        Returns:
            bool: False if the run id is unknown or the job is still pending or running
        """
        with self._lock:
            job = self.jobs.get(run_id)
            if job is None or not job.done.is_set():
                return False
            del self.jobs[run_id]
        return True

    def prune_finished(self, max_age: Optional[float] = None) -> int:
        """
        Drop finished jobs from the registry

        Args:
            max_age: Only drop jobs that finished at least this many seconds ago
                     (None = every finished job)

        Returns:
            int: Number of jobs removed
        """
        cutoff = utc_now() - timedelta(seconds=max_age) if max_age is not None else None
        with self._lock:
            stale = [
                run_id for run_id, job in self.jobs.items()
                if job.done.is_set() and (cutoff is None or job.finished_at <= cutoff)
            ]
            for run_id in stale:
                del self.jobs[run_id]

        if stale:
            logger.info(f"Pruned {len(stale)} finished comparison jobs")
        return len(stale)

    def run_batch(self, pairs: Iterable[Tuple[ImageSource, ImageSource]], output_dir: Optional[str] = None,
                  timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        Compare several image pairs concurrently and wait for all of them

        Returns:
            list: Job status dicts in the order the pairs were given; a pair
                  whose run id was already in use reports status 'refused'
        """
        run_ids = []
        refused = set()
        for index, (baseline, candidate) in enumerate(pairs):
            run_id = f"{self.generate_run_id()}-{index}"
            if not self.schedule_comparison(run_id, baseline, candidate, output_dir):
                refused.add(run_id)
            run_ids.append(run_id)

        for run_id in run_ids:
            if run_id not in refused:
                self.wait(run_id, timeout)

        return [
            {'run_id': run_id, 'status': 'refused'} if run_id in refused else self.get_job_status(run_id)
            for run_id in run_ids
        ]

    def shutdown(self, wait: bool = True):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
