"""
Domain Model Module Initialization
"""
