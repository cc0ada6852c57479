"""
Decision Engine - Participatory Decision-Making Process Engine

Template-driven, multi-phase workflows for participatory budgeting and
voting: proposals are submitted, reviewed, voted on, and selected for
funding as a background scheduler advances each process instance through
its phases.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
