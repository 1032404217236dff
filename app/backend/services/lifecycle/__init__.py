"""Backup lifecycle services.

This package provides:
- Backup type selection from run triggers
- Artifact producers (database dump, config snapshot, code archive)
- Remote publishing (S3, SFTP) and local retention
- Inventory scanning, alert evaluation and status reporting
"""
