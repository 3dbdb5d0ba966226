"""Command-line interface for FindDocs.

- ``python -m finddocs.cli file <path>`` -- ingest one document
- ``python -m finddocs.cli directory <path>`` -- batch-ingest a directory
- ``python -m finddocs.cli ask "<question>"`` -- answer from stored documents
- ``python -m finddocs.cli chat`` -- interactive conversation
"""
