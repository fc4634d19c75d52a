"""Dependency consistency engine — group, check and lock workspace dependency versions."""

from monoversion.engines.consistency.models import DependencyRecord, Package
from monoversion.engines.consistency.workspace import CheckResult, Workspace

__all__ = ["CheckResult", "DependencyRecord", "Package", "Workspace"]
