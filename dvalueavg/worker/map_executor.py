"""
Map Task Executor
Executes map tasks by reading input splits, applying map functions,
partitioning output, and writing intermediate files
"""

import os
import time
import pickle
import zlib
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from dvalueavg.config import TAB_DELIMITER
from dvalueavg.errors import MalformedRecordError

logger = logging.getLogger(__name__)

TEXT_INPUT = 'text'
KEY_VALUE_INPUT = 'key_value'
INPUT_FORMATS = (TEXT_INPUT, KEY_VALUE_INPUT)


def partition_for(key, num_partitions: int) -> int:
    """Stable hash partitioning on the key's text form"""
    return zlib.crc32(str(key).encode('utf-8')) % num_partitions


class MapExecutor:
    """Executes a single map task"""

    def __init__(self, task_id: int, input_path: str, start_offset: int,
                 end_offset: int, num_reduce_tasks: int, map_function: Callable,
                 intermediate_dir: str, job_id: str,
                 combiner_function: Optional[Callable] = None,
                 input_format: str = TEXT_INPUT, skip_malformed: bool = False):
        """
        Initialize the map executor

        Args:
            task_id: Unique ID for this map task within its job
            input_path: Path to input file
            start_offset: Byte offset where this task should start reading
            end_offset: Byte offset where this task should stop reading
            num_reduce_tasks: Number of reduce tasks (for partitioning)
            map_function: Callable (key, value) yielding (key, value) pairs
            intermediate_dir: Directory for partition files of this job
            job_id: Unique job identifier
            combiner_function: Optional local pre-reducer
            input_format: 'text' (offset, line) or 'key_value' (split at first tab)
            skip_malformed: Log and skip records raising MalformedRecordError
        """
        if input_format not in INPUT_FORMATS:
            raise ValueError(f"Unknown input format: {input_format}")
        self.task_id = task_id
        self.input_path = input_path
        self.start_offset = start_offset
        self.end_offset = end_offset
        self.num_reduce_tasks = num_reduce_tasks
        self.map_function = map_function
        self.intermediate_dir = intermediate_dir
        self.job_id = job_id
        self.combiner_function = combiner_function
        self.input_format = input_format
        self.skip_malformed = skip_malformed

    def execute(self) -> dict:
        """
        Execute the map task

        Returns:
            Dictionary with 'success', 'execution_time_ms', 'error_message',
            'intermediate_files' and record counters
        """
        start_time = time.time()
        counters = {
            'records_read': 0,
            'records_emitted': 0,
            'records_combined': 0,
            'records_skipped': 0,
        }

        try:
            logger.info(f"Map task {self.task_id}: Reading input split of {self.input_path}")
            key_values = self._read_input_split()
            counters['records_read'] = len(key_values)

            logger.info(f"Map task {self.task_id}: Processing {len(key_values)} records")
            intermediate = defaultdict(list)
            for key, value in key_values:
                try:
                    pairs = list(self.map_function(key, value))
                except MalformedRecordError as e:
                    if not self.skip_malformed:
                        raise
                    counters['records_skipped'] += 1
                    logger.warning(f"Map task {self.task_id}: Skipping malformed record: {e}")
                    continue
                for out_key, out_value in pairs:
                    intermediate[partition_for(out_key, self.num_reduce_tasks)].append((out_key, out_value))

            counters['records_emitted'] = sum(len(v) for v in intermediate.values())
            logger.info(f"Map task {self.task_id}: Generated {counters['records_emitted']} intermediate pairs")

            if self.combiner_function:
                intermediate = self._apply_combiner(intermediate)
                counters['records_combined'] = sum(len(v) for v in intermediate.values())
                logger.info(f"Map task {self.task_id}: After combiner: {counters['records_combined']} pairs")

            intermediate_files = self._write_intermediate_files(intermediate)

            execution_time = int((time.time() - start_time) * 1000)
            logger.info(f"Map task {self.task_id}: Completed in {execution_time}ms")

            return {
                'success': True,
                'execution_time_ms': execution_time,
                'error_message': '',
                'intermediate_files': intermediate_files,
                **counters,
            }

        except Exception as e:
            execution_time = int((time.time() - start_time) * 1000)
            logger.error(f"Map task {self.task_id} failed: {e}")
            return {
                'success': False,
                'execution_time_ms': execution_time,
                'error_message': str(e),
                'intermediate_files': {},
                **counters,
            }

    def _read_input_split(self) -> list:
        """
        Read assigned portion of input file with line boundary alignment.

        A split owns every line that starts inside [start_offset, end_offset).
        Blank lines are not records and are skipped.

        Returns:
            List of (key, value) tuples
        """
        key_values = []

        with open(self.input_path, 'rb') as f:
            if self.start_offset > 0:
                # The line running across start_offset belongs to the previous split
                f.seek(self.start_offset - 1)
                f.readline()

            while f.tell() < self.end_offset:
                position = f.tell()
                raw = f.readline()
                if not raw:
                    break
                line = raw.decode('utf-8', errors='replace').rstrip('\r\n')
                if not line.strip():
                    continue
                key_values.append(self._to_record(position, line))

        return key_values

    def _to_record(self, position: int, line: str) -> tuple:
        if self.input_format == KEY_VALUE_INPUT:
            key, _, value = line.partition(TAB_DELIMITER)
            return (key, value)
        return (position, line)

    def _apply_combiner(self, intermediate: dict) -> dict:
        """
        Apply combiner function to local map output

        Args:
            intermediate: Dictionary mapping partition_id to list of (key, value) pairs

        Returns:
            Dictionary with same structure but with combined values
        """
        combined = {}
        for partition, kv_pairs in intermediate.items():
            key_groups = defaultdict(list)
            for k, v in kv_pairs:
                key_groups[k].append(v)

            combined_pairs = []
            for key, values in key_groups.items():
                for out_key, out_value in self.combiner_function(key, values):
                    combined_pairs.append((out_key, out_value))

            combined[partition] = combined_pairs

        return combined

    def _write_intermediate_files(self, intermediate: dict) -> Dict[int, str]:
        """
        Pickle each non-empty partition to its own file

        Returns:
            Dictionary mapping partition_id to file path
        """
        os.makedirs(self.intermediate_dir, exist_ok=True)

        written = {}
        for partition, kv_pairs in sorted(intermediate.items()):
            if not kv_pairs:
                continue
            filename = f"{self.job_id}_map_{self.task_id}_part_{partition}.pickle"
            outpath = os.path.join(self.intermediate_dir, filename)
            with open(outpath, 'wb') as f:
                pickle.dump(kv_pairs, f)
            written[partition] = outpath

        return written


def list_partition_files(intermediate_dir: str, job_id: str, partition_id: int) -> List[str]:
    """Intermediate files written by all map tasks of a job for one partition"""
    if not os.path.isdir(intermediate_dir):
        return []
    suffix = f"_part_{partition_id}.pickle"
    prefix = f"{job_id}_map_"
    return sorted(
        os.path.join(intermediate_dir, name)
        for name in os.listdir(intermediate_dir)
        if name.startswith(prefix) and name.endswith(suffix)
    )
