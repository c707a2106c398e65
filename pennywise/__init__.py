"""
Pennywise - Source Package

A personal finance tracking backend: users record income, expenses,
budgets and savings/debt goals, and the server keeps the derived numbers
(budget spent, goal progress, rollover credit, alerts) consistent.

DESIGN PRINCIPLES:
1. Derived fields are caches, recomputed from source records
2. Fail early on bad input, before anything is written
3. Secondary effects never undo a committed primary mutation
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pennywise Team"
