"""
HTTP routers for Reembolso.
"""
