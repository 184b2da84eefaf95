"""
Reduce Task Executor
Executes reduce tasks by reading intermediate data, grouping by key,
applying reduce functions, and writing final output
"""

import os
import time
import pickle
import logging
from collections import defaultdict
from typing import Callable, Optional

from dvalueavg.config import TAB_DELIMITER

logger = logging.getLogger(__name__)


class ReduceExecutor:
    """Executes a single reduce task"""

    def __init__(self, task_id: int, partition_id: int, intermediate_files: list,
                 reduce_function: Callable, output_path: str, job_id: str,
                 sort_key: Optional[Callable] = None):
        """
        Initialize the reduce executor

        Args:
            task_id: Unique ID for this reduce task
            partition_id: Partition ID this reduce task is responsible for
            intermediate_files: List of intermediate file paths to read
            reduce_function: Callable (key, values) yielding (key, value) pairs
            output_path: Directory path where final output should be written
            job_id: Unique job identifier
            sort_key: Key function ordering the groups, natural order if None
        """
        self.task_id = task_id
        self.partition_id = partition_id
        self.intermediate_files = intermediate_files
        self.reduce_function = reduce_function
        self.output_path = output_path
        self.job_id = job_id
        self.sort_key = sort_key

    def execute(self) -> dict:
        """
        Execute the reduce task

        Returns:
            Dictionary with 'success', 'execution_time_ms', 'error_message',
            'output_file' and record counters
        """
        start_time = time.time()
        counters = {'input_groups': 0, 'records_out': 0}

        try:
            logger.info(f"Reduce task {self.task_id}: Reading and grouping intermediate data")
            key_groups = self._read_and_group_intermediate()
            counters['input_groups'] = len(key_groups)
            logger.info(f"Reduce task {self.task_id}: Grouped {len(key_groups)} unique keys")

            results = []
            for key in sorted(key_groups.keys(), key=self.sort_key):
                values = key_groups[key]
                for out_key, out_value in self.reduce_function(key, values):
                    results.append((out_key, out_value))
            counters['records_out'] = len(results)

            logger.info(f"Reduce task {self.task_id}: Generated {len(results)} output pairs")
            output_file = self._write_output(results)

            execution_time = int((time.time() - start_time) * 1000)
            logger.info(f"Reduce task {self.task_id}: Completed in {execution_time}ms")

            return {
                'success': True,
                'execution_time_ms': execution_time,
                'error_message': '',
                'output_file': output_file,
                **counters,
            }

        except Exception as e:
            execution_time = int((time.time() - start_time) * 1000)
            logger.error(f"Reduce task {self.task_id} failed: {e}")
            return {
                'success': False,
                'execution_time_ms': execution_time,
                'error_message': str(e),
                'output_file': '',
                **counters,
            }

    def _read_and_group_intermediate(self) -> dict:
        """
        Read all intermediate files and group by key

        Returns:
            Dictionary mapping key to list of values
        """
        key_groups = defaultdict(list)
        files_read = 0
        records = 0

        for filepath in self.intermediate_files:
            if not os.path.exists(filepath):
                logger.warning(f"Reduce task {self.task_id}: File not found: {filepath}")
                continue

            with open(filepath, 'rb') as f:
                partition_data = pickle.load(f)
            files_read += 1

            for key, value in partition_data:
                key_groups[key].append(value)
                records += 1

        logger.info(f"Reduce task {self.task_id}: Read {files_read} files, {records} records")
        return key_groups

    def _write_output(self, results: list) -> str:
        """
        Write final reduce output

        Args:
            results: List of (key, value) tuples to write

        Returns:
            Path of the written part file
        """
        os.makedirs(self.output_path, exist_ok=True)
        output_file = os.path.join(self.output_path, f"part-{self.partition_id}.txt")

        with open(output_file, 'w', encoding='utf-8') as f:
            for key, value in results:
                f.write(f"{key}{TAB_DELIMITER}{value}\n")

        logger.info(f"Reduce task {self.task_id}: Wrote output to {output_file}")
        return output_file
