"""
Family Finance - Source Package

A family budgeting backend: personal wallets, shared family funds,
income/expense/transfer postings, friends chat and notifications.

DESIGN PRINCIPLES:
1. Validate before the first write
2. Every balance change is paired with a posted transaction
3. Side effects (notifications) never break the main flow
4. Every multi-step operation is auditable by its operation ID
5. Backend collaborators are swappable
"""

__version__ = "1.0.0"
__author__ = "Family Finance Team"
