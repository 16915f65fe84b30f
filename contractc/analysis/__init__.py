"""Whole-program analysis passes."""

from .reachability import ReachabilityAnalyzer, Reachability, ScanContext, callee_name

__all__ = ['ReachabilityAnalyzer', 'Reachability', 'ScanContext', 'callee_name']
