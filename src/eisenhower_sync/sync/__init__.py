"""
Sync subsystem.

Components:
- merge.py: pure local/remote reconciliation (revision, updatedAt, tombstones)
- outbox.py: durable queue of remote snapshots that could not be delivered
- repository.py: local-first repository wiring migrator, merge, remote and outbox
- transfer.py: JSON import/export of task lists
"""
