"""
Average device readings per (date, device type) with a two-job
join-and-aggregate pipeline on a small in-process MapReduce runtime.
"""

__version__ = "0.1.0"
