"""Business logic layer for files app.

This package contains the folder and file services:
- Folder tree: create, rename, move, delete, listing, tree, search
- File lifecycle: upload, download, delete, details, listing, search
- Transaction boundary and structured results for callers

Models are the data layer and ``infrastructure`` wraps external
systems (disk, Redis); all rules about the hierarchy live here.
"""
