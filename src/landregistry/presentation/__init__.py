"""
Presentation layer - operator CLI.
"""
