# API v1 Package
from salina.api.v1 import audit, auth, contacts, dashboard, receivables, reports

__all__ = [
    'audit',
    'auth',
    'contacts',
    'dashboard',
    'receivables',
    'reports',
]
