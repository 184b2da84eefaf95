"""
Configuration for the device value average pipeline.
Format constants plus runtime settings read from the environment.
"""

import os
from dataclasses import dataclass

# Record format
DELIMITER = ","
TAB_DELIMITER = "\t"
NULL_SYMBOL = "\\N"

# Value records are kept only for ids strictly inside these bounds
MIN_DEVICE_ID = 0
MAX_DEVICE_ID = 10

# Configuration from environment
WORK_DIR = os.getenv('DVALUEAVG_WORK_DIR', '/tmp/dvaluesavg')
LOG_LEVEL = os.getenv('DVALUEAVG_LOG_LEVEL', 'INFO')


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class PipelineConfig:
    """Runtime settings for one pipeline run"""
    work_dir: str = WORK_DIR
    num_map_tasks: int = 2
    num_reduce_tasks: int = 2
    max_workers: int = 4
    use_combiner: bool = True
    skip_malformed: bool = False
    keep_temp: bool = False

    def __post_init__(self):
        if self.num_map_tasks < 1:
            raise ValueError("num_map_tasks must be at least 1")
        if self.num_reduce_tasks < 1:
            raise ValueError("num_reduce_tasks must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def temp_dir(self) -> str:
        """Directory holding the materialized join output"""
        return os.path.join(self.work_dir, 'joined')

    @property
    def intermediate_dir(self) -> str:
        """Directory holding map-side partition files"""
        return os.path.join(self.work_dir, 'intermediate')

    @classmethod
    def from_env(cls, **overrides) -> 'PipelineConfig':
        """
        Build a config from DVALUEAVG_* environment variables.

        Keyword arguments whose value is not None take precedence over the
        environment.
        """
        values = {
            'work_dir': os.getenv('DVALUEAVG_WORK_DIR', WORK_DIR),
            'num_map_tasks': _env_int('DVALUEAVG_NUM_MAP_TASKS', cls.num_map_tasks),
            'num_reduce_tasks': _env_int('DVALUEAVG_NUM_REDUCE_TASKS', cls.num_reduce_tasks),
            'max_workers': _env_int('DVALUEAVG_MAX_WORKERS', cls.max_workers),
            'use_combiner': _env_bool('DVALUEAVG_USE_COMBINER', cls.use_combiner),
            'skip_malformed': _env_bool('DVALUEAVG_SKIP_MALFORMED', cls.skip_malformed),
            'keep_temp': _env_bool('DVALUEAVG_KEEP_TEMP', cls.keep_temp),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
