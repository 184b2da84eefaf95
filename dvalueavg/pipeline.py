"""
Device value average pipeline.

Wires the join job and the average job together: the registry and the
values are joined into a temporary directory, which is then read back by
the average job. The temporary data is removed once the run finishes.
"""

import os
import glob
import heapq
import shutil
import uuid
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dvalueavg.config import PipelineConfig
from dvalueavg.coordinator.job_manager import JobInput, JobSpec
from dvalueavg.coordinator.metrics import JobMetrics
from dvalueavg.coordinator.runner import LocalJobRunner
from dvalueavg.jobs import avg_job, join_job
from dvalueavg.records import AverageRow
from dvalueavg.worker.map_executor import KEY_VALUE_INPUT, TEXT_INPUT

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a pipeline run"""
    output_path: str
    rows: List[AverageRow]
    metrics: Dict[str, JobMetrics] = field(default_factory=dict)


def part_files(directory: str) -> List[str]:
    """Part files written by the reduce tasks of a job"""
    return sorted(glob.glob(os.path.join(directory, 'part-*.txt')))


def read_results(output_path: str) -> List[AverageRow]:
    """
    Read the final output and merge the part files.

    Each part file is already ordered by the key comparator, so a k-way
    merge gives the order of a single reducer.
    """
    per_part = []
    for path in part_files(output_path):
        with open(path, 'r', encoding='utf-8') as f:
            per_part.append([AverageRow.parse(line) for line in f if line.strip()])
    return list(heapq.merge(*per_part, key=lambda row: avg_job.sort_key(row.key)))


def _contains(directory: str, path: str) -> bool:
    directory = os.path.realpath(directory)
    path = os.path.realpath(path)
    return os.path.commonpath([directory, path]) == directory


def _remove_dir(path: str):
    if os.path.isdir(path):
        shutil.rmtree(path)
        logger.info(f"Removed {path}")


class DeviceValueAveragePipeline:
    """Average device reading per (date, device type)"""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 runner: Optional[LocalJobRunner] = None):
        self.config = config or PipelineConfig()
        self.runner = runner or LocalJobRunner(max_workers=self.config.max_workers)

    def run(self, devices_path: str, values_path: str, output_path: str) -> PipelineResult:
        """
        Run both jobs.

        Args:
            devices_path: Device registry file (``id,type,...`` lines)
            values_path: Device values file (``id,date,value,...`` lines)
            output_path: Directory for the final part files, replaced if present

        Raises:
            FileNotFoundError: If an input file is missing
            ValueError: If a directory that gets replaced holds an input file
            JobFailedError: If either job failed
        """
        for path in (devices_path, values_path):
            if not os.path.exists(path):
                raise FileNotFoundError(f"Input file not found: {path}")

        run_id = uuid.uuid4().hex[:8]
        config = self.config

        for directory in (output_path, config.temp_dir, config.intermediate_dir):
            for path in (devices_path, values_path):
                if _contains(directory, path):
                    raise ValueError(f"Refusing to replace {directory}: it contains input {path}")

        _remove_dir(output_path)
        _remove_dir(config.temp_dir)
        _remove_dir(config.intermediate_dir)

        try:
            join = self.runner.run(self.join_job_spec(f"join-{run_id}", devices_path, values_path))
            average = self.runner.run(self.average_job_spec(f"average-{run_id}", output_path))
        finally:
            if not config.keep_temp:
                _remove_dir(config.temp_dir)
                _remove_dir(config.intermediate_dir)

        metrics = {
            'join': self.runner.metrics.get_metrics(join.job_id),
            'average': self.runner.metrics.get_metrics(average.job_id),
        }
        rows = read_results(output_path)
        logger.info(f"Pipeline {run_id}: Wrote {len(rows)} rows to {output_path}")
        return PipelineResult(output_path=output_path, rows=rows, metrics=metrics)

    def join_job_spec(self, job_id: str, devices_path: str, values_path: str) -> JobSpec:
        """Registry x values inner join into the temp directory"""
        return JobSpec(
            job_id=job_id,
            inputs=[
                JobInput(devices_path, join_job.project_device, TEXT_INPUT),
                JobInput(values_path, join_job.project_value, TEXT_INPUT),
            ],
            output_path=self.config.temp_dir,
            intermediate_dir=os.path.join(self.config.intermediate_dir, job_id),
            reduce_function=join_job.join_reduce,
            num_map_tasks=self.config.num_map_tasks,
            num_reduce_tasks=self.config.num_reduce_tasks,
            skip_malformed=self.config.skip_malformed
        )

    def average_job_spec(self, job_id: str, output_path: str) -> JobSpec:
        """Average per composite key over the materialized join output"""
        inputs = [JobInput(path, avg_job.extract_value, KEY_VALUE_INPUT)
                  for path in part_files(self.config.temp_dir)]
        return JobSpec(
            job_id=job_id,
            inputs=inputs,
            output_path=output_path,
            intermediate_dir=os.path.join(self.config.intermediate_dir, job_id),
            reduce_function=avg_job.reduce_averages,
            combiner_function=avg_job.combine_averages if self.config.use_combiner else None,
            num_map_tasks=self.config.num_map_tasks,
            num_reduce_tasks=self.config.num_reduce_tasks,
            sort_key=avg_job.sort_key,
            skip_malformed=self.config.skip_malformed
        )
