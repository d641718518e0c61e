"""
Security module - row-level security evaluation and query guards.
"""

from __future__ import annotations

from .guard import RLSGuard, build_guard, merge_guard
from .rls import apply_rls, bypass_applies, create_bypass_check, evaluate_rls, rls_operation_for, scope_holds

__all__ = [
    "evaluate_rls",
    "apply_rls",
    "bypass_applies",
    "scope_holds",
    "create_bypass_check",
    "rls_operation_for",
    "RLSGuard",
    "build_guard",
    "merge_guard",
]
