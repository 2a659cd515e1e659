"""
Integration Tests Module

Contains integration tests for component interactions:
- test_organize_workflow: Organize, renumber, rollback and retry
- test_scan_workflow: Scanning, identity resolution and duplicates
- test_file_operations: Rename, move, delete, import and metadata
"""
