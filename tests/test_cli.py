"""
Tests for the dvalueavg command line client
"""

import json
import os
from unittest.mock import patch

import pytest

from dvalueavg.client.cli import main


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep main() from installing handlers on captured streams"""
    with patch("dvalueavg.client.cli.configure_logging"):
        yield


class TestCli:

    def test_run_and_show_results(self, temp_dir, sample_devices_file, sample_values_file, capsys):
        output = os.path.join(temp_dir, 'output')
        metrics_dir = os.path.join(temp_dir, 'metrics')

        code = main(['run', sample_devices_file, sample_values_file, output,
                     '--work-dir', os.path.join(temp_dir, 'work'),
                     '--num-map-tasks', '2', '--num-reduce-tasks', '1',
                     '--metrics-dir', metrics_dir])

        assert code == 0
        assert "Rows: 5" in capsys.readouterr().out
        with open(os.path.join(metrics_dir, 'join_metrics.json')) as f:
            assert json.load(f)['reduce_output_records'] == 8

        assert main(['show-results', output, '--limit', '2']) == 0
        assert capsys.readouterr().out.splitlines() == [
            "2023-01-02\thumidity\t40.0",
            "2023-01-02\tsensorA\t10.0",
        ]

    def test_run_reports_job_failure(self, temp_dir, sample_values_file, write_file, capsys):
        devices = write_file(temp_dir, 'd.txt', "nope,sensorA\n")

        code = main(['run', devices, sample_values_file, os.path.join(temp_dir, 'output'),
                     '--work-dir', os.path.join(temp_dir, 'work')])

        assert code == 1
        assert "failed" in capsys.readouterr().out

    def test_run_reports_missing_input(self, temp_dir, sample_values_file, capsys):
        code = main(['run', os.path.join(temp_dir, 'missing.txt'), sample_values_file,
                     os.path.join(temp_dir, 'output'), '--work-dir', os.path.join(temp_dir, 'work')])

        assert code == 1
        assert "not found" in capsys.readouterr().out

    def test_run_refuses_output_holding_inputs(self, temp_dir, write_file, capsys):
        devices = write_file(temp_dir, 'd.txt', "2,sensorA\n")
        values = write_file(temp_dir, 'v.txt', "2,2023-01-01,10\n")

        code = main(['run', devices, values, temp_dir, '--work-dir', os.path.join(temp_dir, 'work')])

        assert code == 1
        assert "contains input" in capsys.readouterr().out
        assert os.path.exists(devices)

    def test_rejects_invalid_task_count(self, temp_dir, sample_devices_file, sample_values_file, capsys):
        code = main(['run', sample_devices_file, sample_values_file, os.path.join(temp_dir, 'output'),
                     '--num-reduce-tasks', '0'])

        assert code == 1
        assert "num_reduce_tasks" in capsys.readouterr().out

    def test_show_results_missing_output(self, temp_dir, capsys):
        assert main(['show-results', os.path.join(temp_dir, 'none')]) == 1

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out
