"""Longbox core package.

Modules:
- archive: uniform read access over CBZ (zip) and CBR (rar) archives
- comicinfo: ComicInfo.xml parsing
- models: SQLModel tables for issues, pages, read marks and users
- database: engine/connection pool construction and schema setup
- repository: the catalog store (upserts, queries, read marks, users)
- pages: page sequence rules and content types
- scanner: filesystem scan with mtime-based change detection
- comicrack: one-shot import of a ComicRack database
- config: INI parsing and config object
- auth: salted password hashing for reader accounts
- errors: exception types
- logging_config: rich console and rotating file logging
- migrations: alembic upgrade, stamp and status helpers
"""
