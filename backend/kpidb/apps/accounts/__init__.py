# backend/kpidb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Field executives who submit KPI records
- The role directory used to pick notification recipients
- Standing (ACTIVE / WARNING / AUDITED) derived from the latest KPI score
"""
