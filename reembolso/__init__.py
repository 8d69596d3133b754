"""
Reembolso: data and authentication layer for an expense-reimbursement app
backed by Supabase (auth, Postgres and storage).
"""

__version__ = "0.1.0"
