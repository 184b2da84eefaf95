"""
Job Manager for the local runtime
Handles job state management, task generation, and progress tracking
"""

import os
import time
import threading
from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from dvalueavg.worker.map_executor import TEXT_INPUT, list_partition_files


class JobStatus(Enum):
    """Status of a job"""
    PENDING = "pending"
    MAP_PHASE = "map_phase"
    REDUCE_PHASE = "reduce_phase"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(Enum):
    """Status of individual map or reduce tasks"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobInput:
    """One input file bound to the map function that reads it"""
    path: str
    map_function: Callable
    input_format: str = TEXT_INPUT


@dataclass
class JobSpec:
    """What a caller submits to the job manager"""
    job_id: str
    inputs: List[JobInput]
    output_path: str
    intermediate_dir: str
    reduce_function: Callable
    combiner_function: Optional[Callable] = None
    num_map_tasks: int = 1
    num_reduce_tasks: int = 1
    sort_key: Optional[Callable] = None
    skip_malformed: bool = False


@dataclass
class MapTask:
    """Represents a single map task"""
    task_id: int
    input: JobInput
    start_offset: int
    end_offset: int
    status: TaskStatus = TaskStatus.PENDING
    error_message: str = ''


@dataclass
class ReduceTask:
    """Represents a single reduce task"""
    task_id: int
    partition_id: int
    intermediate_files: List[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    error_message: str = ''


@dataclass
class Job:
    """Represents a complete job"""
    job_id: str
    inputs: List[JobInput]
    output_path: str
    intermediate_dir: str
    reduce_function: Callable
    combiner_function: Optional[Callable]
    num_map_tasks: int
    num_reduce_tasks: int
    sort_key: Optional[Callable] = None
    skip_malformed: bool = False
    status: JobStatus = JobStatus.PENDING
    map_tasks: List[MapTask] = field(default_factory=list)
    reduce_tasks: List[ReduceTask] = field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0
    error_message: str = ''

    @property
    def use_combiner(self) -> bool:
        return self.combiner_function is not None


class JobManager:
    """Manages jobs and their lifecycle"""

    def __init__(self):
        self.jobs: Dict[str, Job] = {}
        self.lock = threading.Lock()

    def create_job(self, job_spec: JobSpec) -> Job:
        """Create new job from specification"""
        if not job_spec.inputs:
            raise ValueError(f"Job {job_spec.job_id} has no inputs")
        with self.lock:
            if job_spec.job_id in self.jobs:
                raise ValueError(f"Job {job_spec.job_id} already exists")
            job = Job(
                job_id=job_spec.job_id,
                inputs=list(job_spec.inputs),
                output_path=job_spec.output_path,
                intermediate_dir=job_spec.intermediate_dir,
                reduce_function=job_spec.reduce_function,
                combiner_function=job_spec.combiner_function,
                num_map_tasks=job_spec.num_map_tasks,
                num_reduce_tasks=job_spec.num_reduce_tasks,
                sort_key=job_spec.sort_key,
                skip_malformed=job_spec.skip_malformed,
                start_time=time.time()
            )
            self.jobs[job.job_id] = job
            return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self.lock:
            return self.jobs.get(job_id)

    def generate_map_tasks(self, job: Job) -> List[MapTask]:
        """Split every input file into up to num_map_tasks byte ranges"""
        map_tasks = []
        for job_input in job.inputs:
            if not os.path.exists(job_input.path):
                raise FileNotFoundError(f"Input file not found: {job_input.path}")
            file_size = os.path.getsize(job_input.path)
            num_splits = max(1, min(job.num_map_tasks, file_size))
            chunk_size = file_size // num_splits

            for i in range(num_splits):
                start = i * chunk_size
                end = file_size if i == num_splits - 1 else (i + 1) * chunk_size
                map_tasks.append(MapTask(
                    task_id=len(map_tasks),
                    input=job_input,
                    start_offset=start,
                    end_offset=end
                ))

        with self.lock:
            job.map_tasks = map_tasks
            job.status = JobStatus.MAP_PHASE
        return map_tasks

    def generate_reduce_tasks(self, job: Job) -> List[ReduceTask]:
        """Create R reduce tasks with intermediate file assignments"""
        reduce_tasks = []
        for partition_id in range(job.num_reduce_tasks):
            reduce_tasks.append(ReduceTask(
                task_id=partition_id,
                partition_id=partition_id,
                intermediate_files=list_partition_files(job.intermediate_dir, job.job_id, partition_id)
            ))

        with self.lock:
            job.reduce_tasks = reduce_tasks
            job.status = JobStatus.REDUCE_PHASE
        return reduce_tasks

    def mark_map_task_running(self, job_id: str, task_id: int):
        self._set_task_status(job_id, 'map_tasks', task_id, TaskStatus.RUNNING)

    def mark_reduce_task_running(self, job_id: str, task_id: int):
        self._set_task_status(job_id, 'reduce_tasks', task_id, TaskStatus.RUNNING)

    def mark_map_task_completed(self, job_id: str, task_id: int):
        """Mark map task as completed"""
        self._set_task_status(job_id, 'map_tasks', task_id, TaskStatus.COMPLETED)

    def mark_reduce_task_completed(self, job_id: str, task_id: int):
        """Mark reduce task as completed; completes the job when it is the last one"""
        self._set_task_status(job_id, 'reduce_tasks', task_id, TaskStatus.COMPLETED)
        with self.lock:
            job = self.jobs.get(job_id)
            if job and job.reduce_tasks and all(t.status == TaskStatus.COMPLETED for t in job.reduce_tasks):
                job.status = JobStatus.COMPLETED
                job.end_time = time.time()

    def mark_map_task_failed(self, job_id: str, task_id: int, error_message: str):
        self._fail_task(job_id, 'map_tasks', task_id, error_message)

    def mark_reduce_task_failed(self, job_id: str, task_id: int, error_message: str):
        self._fail_task(job_id, 'reduce_tasks', task_id, error_message)

    def all_map_tasks_completed(self, job_id: str) -> bool:
        with self.lock:
            job = self.jobs.get(job_id)
            return bool(job) and all(t.status == TaskStatus.COMPLETED for t in job.map_tasks)

    def _set_task_status(self, job_id: str, task_list: str, task_id: int, status: TaskStatus):
        with self.lock:
            job = self.jobs.get(job_id)
            tasks = getattr(job, task_list) if job else []
            if task_id < len(tasks):
                tasks[task_id].status = status

    def _fail_task(self, job_id: str, task_list: str, task_id: int, error_message: str):
        with self.lock:
            job = self.jobs.get(job_id)
            if not job:
                return
            tasks = getattr(job, task_list)
            if task_id < len(tasks):
                tasks[task_id].status = TaskStatus.FAILED
                tasks[task_id].error_message = error_message
            if job.status != JobStatus.FAILED:
                job.status = JobStatus.FAILED
                job.error_message = error_message
                job.end_time = time.time()

    def get_job_status(self, job_id: str) -> Optional[Dict]:
        """Get current job status with progress"""
        with self.lock:
            job = self.jobs.get(job_id)
            if not job:
                return None

            map_completed = sum(1 for t in job.map_tasks if t.status == TaskStatus.COMPLETED)
            reduce_completed = sum(1 for t in job.reduce_tasks if t.status == TaskStatus.COMPLETED)
            # Reduce tasks are only generated after the map phase, count them up front
            total_tasks = len(job.map_tasks) + job.num_reduce_tasks
            progress = int((map_completed + reduce_completed) / total_tasks * 100) if total_tasks > 0 else 0

            return {
                'status': job.status.value,
                'progress': progress,
                'map_completed': map_completed,
                'map_total': len(job.map_tasks),
                'reduce_completed': reduce_completed,
                'reduce_total': len(job.reduce_tasks),
                'error_message': job.error_message
            }
