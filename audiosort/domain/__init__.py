"""
Domain Layer - Core Business Entities

This layer defines the file and taxonomy records, metadata value objects
and domain exceptions, independent of infrastructure.

Modules:
- models: FileRecord, CategoryRecord, MetadataUpdate, summaries
- exceptions: Domain-specific exceptions
"""
