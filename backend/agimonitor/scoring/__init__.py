"""Deterministic scoring: heuristics, combination, severity, triage, secrecy."""
