"""
Learning Profiles

Adaptive assessment of student evidence: heuristic scoring, competency
classification, narrative recommendations and per-student learning profiles.
"""

__version__ = "0.1.0"
