"""TPOG Calc command-line interface."""
