"""
pgtune - PostgreSQL tuning calculator.

Derives postgresql.conf settings from a description of the host
(memory, CPU word width, free WAL volume space, engine version)
and a declared workload.
"""

__version__ = "1.0.0"
