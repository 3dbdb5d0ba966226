"""FindDocs: document ingestion, keyword retrieval and grounded Q&A."""

__version__ = "0.1.0"
