"""Deterministic plan generator.

Plans are built from category heuristics and phase templates only; there is no
randomness and no clock read, so a goal plus ``now`` always yields the same schedule.
"""
