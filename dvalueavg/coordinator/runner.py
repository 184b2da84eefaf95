"""
Local job runner.
Drives a job through its map phase, the shuffle barrier and its reduce phase
using a thread pool in the current process.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from dvalueavg.coordinator.job_manager import Job, JobManager, JobSpec, JobStatus
from dvalueavg.coordinator.metrics import MetricsCollector
from dvalueavg.errors import JobFailedError
from dvalueavg.worker.map_executor import MapExecutor
from dvalueavg.worker.reduce_executor import ReduceExecutor

logger = logging.getLogger(__name__)


class LocalJobRunner:
    """Runs jobs to completion on a local thread pool"""

    def __init__(self, max_workers: int = 4, job_manager: Optional[JobManager] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.max_workers = max_workers
        self.job_manager = job_manager or JobManager()
        self.metrics = metrics or MetricsCollector()

    def run(self, job_spec: JobSpec) -> Job:
        """
        Run a job and block until it finishes.

        Returns:
            The completed Job

        Raises:
            JobFailedError: If any map or reduce task failed
            FileNotFoundError: If an input file does not exist
        """
        job = self.job_manager.create_job(job_spec)
        logger.info(f"Job {job.job_id}: Submitted with {len(job.inputs)} inputs")

        map_tasks = self.job_manager.generate_map_tasks(job)
        self.metrics.start_job(
            job.job_id,
            num_map_tasks=len(map_tasks),
            num_reduce_tasks=job.num_reduce_tasks,
            use_combiner=job.use_combiner,
            input_paths=[i.path for i in job.inputs]
        )
        os.makedirs(job.intermediate_dir, exist_ok=True)

        logger.info(f"Job {job.job_id}: MAP phase with {len(map_tasks)} tasks")
        self._run_map_phase(job)
        self.metrics.end_map_phase(job.job_id)
        self._raise_if_failed(job)

        reduce_tasks = self.job_manager.generate_reduce_tasks(job)
        self.metrics.start_reduce_phase(job.job_id, job.intermediate_dir)
        logger.info(f"Job {job.job_id}: REDUCE phase with {len(reduce_tasks)} tasks")
        self._run_reduce_phase(job)
        self._raise_if_failed(job)

        self.metrics.end_job(job.job_id, job.output_path)
        logger.info(f"Job {job.job_id}: Completed successfully")
        return job

    def _run_map_phase(self, job: Job):
        executors = {
            task.task_id: MapExecutor(
                task_id=task.task_id,
                input_path=task.input.path,
                start_offset=task.start_offset,
                end_offset=task.end_offset,
                num_reduce_tasks=job.num_reduce_tasks,
                map_function=task.input.map_function,
                intermediate_dir=job.intermediate_dir,
                job_id=job.job_id,
                combiner_function=job.combiner_function,
                input_format=task.input.input_format,
                skip_malformed=job.skip_malformed
            )
            for task in job.map_tasks
        }

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {}
            for task_id, executor in executors.items():
                self.job_manager.mark_map_task_running(job.job_id, task_id)
                futures[pool.submit(executor.execute)] = task_id

            for future in as_completed(futures):
                task_id = futures[future]
                result = future.result()
                self.metrics.record_map_result(job.job_id, result)
                if result['success']:
                    self.job_manager.mark_map_task_completed(job.job_id, task_id)
                else:
                    self.job_manager.mark_map_task_failed(job.job_id, task_id, result['error_message'])

    def _run_reduce_phase(self, job: Job):
        executors = {
            task.task_id: ReduceExecutor(
                task_id=task.task_id,
                partition_id=task.partition_id,
                intermediate_files=task.intermediate_files,
                reduce_function=job.reduce_function,
                output_path=job.output_path,
                job_id=job.job_id,
                sort_key=job.sort_key
            )
            for task in job.reduce_tasks
        }

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {}
            for task_id, executor in executors.items():
                self.job_manager.mark_reduce_task_running(job.job_id, task_id)
                futures[pool.submit(executor.execute)] = task_id

            for future in as_completed(futures):
                task_id = futures[future]
                result = future.result()
                self.metrics.record_reduce_result(job.job_id, result)
                if result['success']:
                    self.job_manager.mark_reduce_task_completed(job.job_id, task_id)
                else:
                    self.job_manager.mark_reduce_task_failed(job.job_id, task_id, result['error_message'])

    def _raise_if_failed(self, job: Job):
        if job.status == JobStatus.FAILED:
            raise JobFailedError(job.job_id, job.error_message)
