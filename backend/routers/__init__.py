"""
Startup Dashboard - API Routers
"""
