"""
Pytest configuration and shared fixtures
"""

import pytest
import os
import tempfile
import shutil

from dvalueavg.config import PipelineConfig


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def sample_devices():
    """Sample device registry"""
    return """1,temperature
2,sensorA
3,humidity
4,sensorA
12,pressure
"""


@pytest.fixture
def sample_values():
    """Sample readings, including out of range ids and null dates"""
    return """1,2023-01-01,20.5
1,2023-01-01,21.5
1,2023-01-02,19.0
2,2023-01-01,10
2,2023-01-01,20
2,2023-01-02,5
3,\\N,50
3,2023-01-02,40
4,2023-01-02,15
0,2023-01-01,5
12,2023-01-01,99
7,2023-01-01,1000
"""


def _write_file(directory, name, content):
    filepath = os.path.join(directory, name)
    with open(filepath, 'w') as f:
        f.write(content)
    return filepath


@pytest.fixture
def sample_devices_file(temp_dir, sample_devices):
    """Create a sample registry file"""
    return _write_file(temp_dir, 'device.txt', sample_devices)


@pytest.fixture
def sample_values_file(temp_dir, sample_values):
    """Create a sample values file"""
    return _write_file(temp_dir, 'dvalues.txt', sample_values)


@pytest.fixture
def pipeline_config(temp_dir):
    """Config with the work directory inside the test directory"""
    return PipelineConfig(
        work_dir=os.path.join(temp_dir, 'work'),
        num_map_tasks=2,
        num_reduce_tasks=2,
        max_workers=2
    )


@pytest.fixture
def write_file():
    """Helper writing a named file into a directory"""
    return _write_file
