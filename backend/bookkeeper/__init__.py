"""
Recurring payment scheduling and lifecycle engine.
"""
