from ingestion.staging.serializer import CsvSerializationConfig, parse_records, serialize_records
from ingestion.staging.gcs_writer import StagingWriter

__all__ = ["CsvSerializationConfig", "parse_records", "serialize_records", "StagingWriter"]
