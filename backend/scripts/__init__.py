"""
Backend Scripts Module

Maintenance scripts for the gate pass database.

Available scripts:
    - seed_data.py: Creates sample directory users for local testing
    - migrate_legacy_status.py: Rewrites camelCase requests and ledger rows

Usage:
    python -m scripts.seed_data
    python -m scripts.migrate_legacy_status --dry-run
"""
