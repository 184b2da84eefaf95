"""
Unit tests for job metrics
"""

import json
import os

import pytest

from dvalueavg.coordinator.metrics import MetricsCollector


class TestMetricsCollector:
    """Tests for counters, sizes and persistence"""

    def test_accumulates_task_counters(self, sample_values_file):
        collector = MetricsCollector()
        collector.start_job('job', 2, 1, True, [sample_values_file])

        collector.record_map_result('job', {'records_read': 6, 'records_emitted': 4, 'records_combined': 2})
        collector.record_map_result('job', {'records_read': 6, 'records_emitted': 4,
                                            'records_combined': 2, 'records_skipped': 1})
        collector.record_reduce_result('job', {'input_groups': 3, 'records_out': 3})

        metrics = collector.get_metrics('job')
        assert metrics.input_size_bytes == os.path.getsize(sample_values_file)
        assert metrics.map_input_records == 12
        assert metrics.map_output_records == 8
        assert metrics.combine_output_records == 4
        assert metrics.malformed_records_skipped == 1
        assert metrics.reduce_output_records == 3
        assert metrics.peak_rss_bytes > 0

    def test_combiner_ratio_and_sizes(self, temp_dir):
        collector = MetricsCollector()
        collector.start_job('job', 1, 1, True, [])
        collector.record_map_result('job', {'records_emitted': 10, 'records_combined': 4})

        with open(os.path.join(temp_dir, 'job_map_0_part_0.pickle'), 'wb') as f:
            f.write(b'x' * 100)
        output_dir = os.path.join(temp_dir, 'output')
        os.makedirs(output_dir)
        with open(os.path.join(output_dir, 'part-0.txt'), 'w') as f:
            f.write('y' * 20)

        collector.end_map_phase('job')
        collector.start_reduce_phase('job', temp_dir)
        collector.end_job('job', output_dir)

        metrics = collector.get_metrics('job')
        assert metrics.combiner_reduction_ratio == pytest.approx(0.6)
        assert metrics.intermediate_size_bytes == 100
        assert metrics.output_size_bytes == 20
        assert metrics.total_time_seconds >= 0

    def test_save_to_file(self, temp_dir):
        collector = MetricsCollector()
        collector.start_job('job', 1, 1, False, [])
        collector.end_job('job', temp_dir)

        path = os.path.join(temp_dir, 'metrics', 'job.json')
        collector.get_metrics('job').save_to_file(path)

        with open(path) as f:
            data = json.load(f)
        assert data['job_id'] == 'job'
        assert data['use_combiner'] is False
        assert 'total_time_seconds' in data

    def test_unknown_job_is_ignored(self):
        collector = MetricsCollector()
        collector.record_map_result('missing', {'records_read': 1})
        collector.end_job('missing', '/tmp')
        assert collector.get_metrics('missing') is None
