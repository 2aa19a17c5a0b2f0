"""
Catalog Ingest - tabular product import pipeline.

  content -> parse_csv_content -> ProductAssembler (+ CategoryDetector)
          -> ImportReconciler -> CatalogRepository
"""

__version__ = "1.0.0"
