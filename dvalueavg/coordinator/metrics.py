"""
Performance metrics collection for jobs.
"""

import os
import glob
import time
import json
import threading
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

import psutil


@dataclass
class JobMetrics:
    """Metrics for a single job execution."""

    job_id: str
    start_time: float
    end_time: float
    map_phase_start: float
    map_phase_end: float
    reduce_phase_start: float
    reduce_phase_end: float
    num_map_tasks: int
    num_reduce_tasks: int
    use_combiner: bool
    input_size_bytes: int
    intermediate_size_bytes: int = 0
    output_size_bytes: int = 0
    map_input_records: int = 0
    map_output_records: int = 0
    combine_output_records: int = 0
    malformed_records_skipped: int = 0
    reduce_input_groups: int = 0
    reduce_output_records: int = 0
    peak_rss_bytes: int = 0
    combiner_reduction_ratio: float = 0.0

    @property
    def total_time_seconds(self) -> float:
        """Total job execution time in seconds."""
        return self.end_time - self.start_time

    @property
    def map_phase_time_seconds(self) -> float:
        """Map phase execution time in seconds."""
        return self.map_phase_end - self.map_phase_start

    @property
    def reduce_phase_time_seconds(self) -> float:
        """Reduce phase execution time in seconds."""
        return self.reduce_phase_end - self.reduce_phase_start

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        data = asdict(self)
        data['total_time_seconds'] = self.total_time_seconds
        data['map_phase_time_seconds'] = self.map_phase_time_seconds
        data['reduce_phase_time_seconds'] = self.reduce_phase_time_seconds
        return data

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        os.makedirs(os.path.dirname(os.path.abspath(filepath)), exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _total_size(paths: List[str]) -> int:
    return sum(os.path.getsize(p) for p in paths if os.path.exists(p))


class MetricsCollector:
    """Collects and manages metrics for jobs."""

    def __init__(self):
        self.job_metrics: Dict[str, JobMetrics] = {}
        self.process = psutil.Process()
        self._lock = threading.Lock()

    def _sample_memory(self, metrics: JobMetrics):
        rss = self.process.memory_info().rss
        metrics.peak_rss_bytes = max(metrics.peak_rss_bytes, rss)

    def start_job(self, job_id: str, num_map_tasks: int, num_reduce_tasks: int,
                  use_combiner: bool, input_paths: List[str]):
        """Initialize metrics tracking for a new job."""
        now = time.time()
        metrics = JobMetrics(
            job_id=job_id,
            start_time=now,
            end_time=0,
            map_phase_start=now,
            map_phase_end=0,
            reduce_phase_start=0,
            reduce_phase_end=0,
            num_map_tasks=num_map_tasks,
            num_reduce_tasks=num_reduce_tasks,
            use_combiner=use_combiner,
            input_size_bytes=_total_size(input_paths)
        )
        self._sample_memory(metrics)
        with self._lock:
            self.job_metrics[job_id] = metrics

    def record_map_result(self, job_id: str, result: dict):
        """Accumulate record counters reported by a map task."""
        with self._lock:
            metrics = self.job_metrics.get(job_id)
            if not metrics:
                return
            metrics.map_input_records += result.get('records_read', 0)
            metrics.map_output_records += result.get('records_emitted', 0)
            metrics.combine_output_records += result.get('records_combined', 0)
            metrics.malformed_records_skipped += result.get('records_skipped', 0)
            self._sample_memory(metrics)

    def record_reduce_result(self, job_id: str, result: dict):
        """Accumulate record counters reported by a reduce task."""
        with self._lock:
            metrics = self.job_metrics.get(job_id)
            if not metrics:
                return
            metrics.reduce_input_groups += result.get('input_groups', 0)
            metrics.reduce_output_records += result.get('records_out', 0)
            self._sample_memory(metrics)

    def end_map_phase(self, job_id: str):
        """Mark the end of the map phase."""
        if job_id in self.job_metrics:
            self.job_metrics[job_id].map_phase_end = time.time()

    def start_reduce_phase(self, job_id: str, intermediate_dir: str):
        """Mark the start of the reduce phase and calculate intermediate data size."""
        if job_id not in self.job_metrics:
            return
        metrics = self.job_metrics[job_id]
        metrics.reduce_phase_start = time.time()

        pattern = os.path.join(intermediate_dir, f"{job_id}_map_*_part_*.pickle")
        metrics.intermediate_size_bytes = _total_size(glob.glob(pattern))

        if metrics.use_combiner and metrics.map_output_records > 0:
            metrics.combiner_reduction_ratio = \
                1.0 - (metrics.combine_output_records / metrics.map_output_records)

    def end_job(self, job_id: str, output_path: str):
        """Mark job completion and calculate output size."""
        if job_id not in self.job_metrics:
            return
        metrics = self.job_metrics[job_id]
        metrics.reduce_phase_end = time.time()
        metrics.end_time = time.time()
        metrics.output_size_bytes = _total_size(glob.glob(os.path.join(output_path, "part-*.txt")))
        self._sample_memory(metrics)

    def get_metrics(self, job_id: str) -> Optional[JobMetrics]:
        """Retrieve metrics for a specific job."""
        return self.job_metrics.get(job_id)
