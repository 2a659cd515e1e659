"""
Application Layer - Business Logic and Services

This layer implements the library use cases and coordinates between the
domain models and the infrastructure.

Modules:
- library_manager: scanning, identity resolution, reorganization, import
- naming_manager: taxonomy naming, conflict sequencing, rename ledger
- batch_processor: embedded metadata merge and write
"""
