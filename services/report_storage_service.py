"""
Report storage service — uploads rendered reports to Supabase Storage.

Only used when the caller asks for a durable copy. Uploads go through the
service-role client when one is configured, since report buckets are
usually not writable with the anon key.
"""

import time
from typing import Optional

import structlog

from config import settings, get_admin_client, get_supabase_client
from exceptions import StorageError
from models.production_report import StoredReport

logger = structlog.get_logger(__name__)


class ReportStorageService:
    """Persists report documents and issues public URLs."""

    def __init__(
        self,
        client=None,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
    ):
        if client is None:
            admin = get_admin_client() if settings.storage_configured else None
            client = admin or get_supabase_client()
        self.db = client
        self.bucket = bucket or settings.report_storage_bucket
        self.prefix = prefix if prefix is not None else settings.report_storage_prefix

    def build_path(self, location_hint: str, extension: str) -> str:
        """
        Build a unique object path.

        'personalizado_2025-06-01_a_2025-06-30' ->
        'relatorios/personalizado_2025-06-01_a_2025-06-30_1719792000000.pdf'
        """
        safe_hint = location_hint.replace(" ", "_").strip("/")
        filename = f"{safe_hint}_{int(time.time() * 1000)}.{extension}"
        return f"{self.prefix.strip('/')}/{filename}" if self.prefix else filename

    def persist(
        self,
        document: bytes,
        location_hint: str,
        content_type: str = "application/pdf",
        extension: str = "pdf",
    ) -> StoredReport:
        """
        Upload a document and return where it can be fetched.

        Args:
            document: Rendered bytes
            location_hint: File name stem, without extension
            content_type: MIME type stored with the object
            extension: File extension

        Returns:
            StoredReport with bucket, path and public URL

        Raises:
            StorageError: If the upload or URL lookup fails
        """
        path = self.build_path(location_hint, extension)

        logger.debug(
            "uploading_report_to_storage",
            bucket=self.bucket,
            path=path,
            size_bytes=len(document),
        )

        try:
            bucket = self.db.storage.from_(self.bucket)
            bucket.upload(
                path,
                document,
                file_options={"content-type": content_type, "upsert": "true"},
            )
            url = bucket.get_public_url(path)
        except Exception as e:
            logger.error(
                "report_upload_failed",
                bucket=self.bucket,
                path=path,
                error=str(e),
            )
            raise StorageError(self.bucket, path, str(e)) from e

        logger.info(
            "report_stored",
            bucket=self.bucket,
            path=path,
        )

        return StoredReport(bucket=self.bucket, path=path, url=url)


# Singleton
_report_storage_service: Optional[ReportStorageService] = None


def get_report_storage_service() -> ReportStorageService:
    """Get or create ReportStorageService instance."""
    global _report_storage_service
    if _report_storage_service is None:
        _report_storage_service = ReportStorageService()
    return _report_storage_service
