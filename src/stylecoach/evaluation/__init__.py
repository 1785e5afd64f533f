"""
Resolution evals -- hand-authored cases graded against real pipeline runs.

Run (from the repo root, against the sample guide in evals/data):
    stylecoach --guide evals/data/style-guide.json --registry evals/data/category-registry.json eval evals/data/resolution-cases.json --details
"""

from .cases import EvalCase, load_cases
from .graders import CodeGrader, CodeGraderResult, grade_case
from .runner import (
    CaseOutcome,
    EvalRunner,
    EvalStats,
    RecordingClient,
    compute_stats,
    summary_lines,
    write_log,
    write_results_snapshot,
)
