"""Run rule test suites against valid and invalid code samples, with snapshot checking."""

__version__ = "0.1.0"