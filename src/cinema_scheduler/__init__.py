"""
Cinema Shift Scheduling System

Assigns daily open/middle/close shifts and weekly rest days to the staff of
two cooperating cinemas, with protected manual assignments, dual-duty
support between locations, and per-staff balance statistics.
"""

__version__ = "1.0.0"
__author__ = "Cinema Scheduler Team"
