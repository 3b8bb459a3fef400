"""docexport: rich document tree export to DOCX and PDF content trees."""

__version__ = "1.0.0"
