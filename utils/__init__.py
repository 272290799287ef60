"""
Shared helpers for Scroll Capture
"""
