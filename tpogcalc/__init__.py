"""TPOG Calc - driver compensation and time-off accrual engine."""

__version__ = "0.1.0"
