"""Analysis package — resolution, verification, reporting and job orchestration.

The orchestrator is imported from its own module
(``linkaudit.analysis.orchestrator``) because it depends on the store
package, which in turn depends on the models defined here.
"""

from linkaudit.analysis.models import (
    AnalysisJob,
    AnalysisResult,
    AnalysisSummary,
    CheckedLink,
    JobStatus,
    LinkClassification,
    compute_health_score,
)
from linkaudit.analysis.validators import InvalidTargetError

__all__ = [
    "AnalysisJob",
    "AnalysisResult",
    "AnalysisSummary",
    "CheckedLink",
    "JobStatus",
    "LinkClassification",
    "compute_health_score",
    "InvalidTargetError",
]
