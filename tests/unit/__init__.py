"""
Unit Tests Module

Contains unit tests for individual components:
- test_taxonomy_namer / test_sequencer / test_ledger: naming and renaming
- test_metadata_sync / test_checksum: embedded tags and content identity
- test_config / test_catalog: settings and taxonomy import
"""
