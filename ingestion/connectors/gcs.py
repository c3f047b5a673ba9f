"""
Google Cloud Storage connector for staged load files
"""

import logging
from typing import List, Optional, Sequence, Tuple

from google.cloud import storage

logger = logging.getLogger(__name__)


def parse_gcs_uri(uri: str) -> Optional[Tuple[str, str]]:
    """Split ``gs://bucket/object`` into (bucket, object); None if malformed."""
    if not uri or not uri.startswith("gs://"):
        return None
    bucket, _, object_name = uri[len("gs://"):].partition("/")
    if not bucket or not object_name:
        return None
    return bucket, object_name


class GCSObjectStore:
    """
    Put and delete objects in a single GCS bucket.

    Calls are blocking; async callers run them in a worker thread.
    """

    def __init__(self, client: storage.Client, bucket_name: str):
        self.client = client
        self.bucket_name = bucket_name
        self.bucket = client.bucket(bucket_name)

    def put_object(self, object_name: str, data: bytes, content_type: str = "text/csv") -> str:
        """
        Upload ``data`` as ``object_name``.

        Returns:
            The object's ``gs://`` URI
        """
        blob = self.bucket.blob(object_name)
        blob.upload_from_string(data, content_type=content_type)
        return f"gs://{self.bucket_name}/{object_name}"

    def delete_objects(self, uris: Sequence[str]) -> List[bool]:
        """
        Delete the objects behind ``uris``.

        Returns:
            One flag per URI: True if deleted, False if the URI was malformed,
            pointed at another bucket, or the object did not exist
        """
        results = [False] * len(uris)
        targets = []

        for i, uri in enumerate(uris):
            parsed = parse_gcs_uri(uri)
            if parsed is None or parsed[0] != self.bucket_name:
                logger.warning(f"Skipping delete of unrecognised GCS URI: {uri}")
                continue
            targets.append((i, parsed[1]))

        if not targets:
            return results

        missing = set()
        self.bucket.delete_blobs(
            [self.bucket.blob(name) for _, name in targets],
            on_error=lambda blob: missing.add(blob.name),
        )

        for i, name in targets:
            results[i] = name not in missing
        return results
