"""
Object storage and warehouse connectors.
"""

from ingestion.connectors.gcs import GCSObjectStore, parse_gcs_uri
from ingestion.connectors.bigquery import BigQueryWarehouse, LoadJobResult

__all__ = ["GCSObjectStore", "parse_gcs_uri", "BigQueryWarehouse", "LoadJobResult"]
