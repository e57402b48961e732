"""Submissions: tokenized inputs and the registry that owns them."""

from codetile.submissions.loader import load_submissions
from codetile.submissions.registry import SubmissionRegistry
from codetile.submissions.schemas import Submission

__all__ = [
    "Submission",
    "SubmissionRegistry",
    "load_submissions",
]
