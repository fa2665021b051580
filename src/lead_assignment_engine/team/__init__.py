"""Branch employees eligible for lead assignment."""

from .employees import Employee, CandidatePool

__all__ = [
    'Employee',
    'CandidatePool',
]
