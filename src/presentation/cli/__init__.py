"""
Command line interface for the recovery engine.
"""
