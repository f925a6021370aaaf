"""
DigestBot Summary Pipeline

Main Components:
- orchestrator: SummaryPipeline, one summary request end to end
- weekly: WeeklyAggregator over already-stored items
- factory: collaborators wired from settings
- cli: ``python -m digestbot.pipeline``
"""

from .orchestrator import (
    SummaryPipeline,
    SummaryRequestInput,
    SummaryRequestStatus,
    PipelineResult,
    RunReport,
    StepOutcome,
    build_request,
)
from .weekly import WeeklyAggregator, WeeklyResult

__all__ = [
    "SummaryPipeline",
    "SummaryRequestInput",
    "SummaryRequestStatus",
    "PipelineResult",
    "RunReport",
    "StepOutcome",
    "build_request",
    "WeeklyAggregator",
    "WeeklyResult",
]
