"""Wallet risk scoring."""
from .risk_scorer import RiskScorer

__all__ = ["RiskScorer"]
