"""
Application layer: audit write paths, scope resolution and filter compilation.
"""
