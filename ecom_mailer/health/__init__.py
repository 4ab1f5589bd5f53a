"""Health subsystem — connectivity check engine and sequential prober."""

from .engine import CHECKS, CheckDef, CheckResult, Status, execute_check
from .prober import ConnectivityProber
