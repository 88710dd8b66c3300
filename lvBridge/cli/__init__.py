"""
Command-line interface for lvBridge
"""
