"""
Presentation layer: command line interface and output formatting.
"""
