"""
Tests for report_storage_service.
"""

from unittest.mock import MagicMock, patch

import pytest

from exceptions import StorageError
from services.report_storage_service import ReportStorageService


class TestBuildPath:
    """Tests for object path construction."""

    def test_prefix_hint_and_extension(self, mock_supabase):
        service = ReportStorageService(client=mock_supabase, bucket="reports", prefix="relatorios")
        path = service.build_path("personalizado_2025-06-01_a_2025-06-30", "pdf")

        assert path.startswith("relatorios/personalizado_2025-06-01_a_2025-06-30_")
        assert path.endswith(".pdf")
        stamp = path.rsplit("_", 1)[1].split(".")[0]
        assert stamp.isdigit()

    def test_empty_prefix(self, mock_supabase):
        service = ReportStorageService(client=mock_supabase, bucket="reports", prefix="")
        assert "/" not in service.build_path("report", "xlsx")

    def test_spaces_replaced(self, mock_supabase):
        service = ReportStorageService(client=mock_supabase, bucket="reports", prefix="r")
        assert " " not in service.build_path("my report", "pdf")


class TestPersist:
    """Tests for uploading documents."""

    def test_uploads_and_returns_public_url(self, mock_supabase):
        service = ReportStorageService(client=mock_supabase, bucket="reports", prefix="relatorios")
        stored = service.persist(b"%PDF-1.4", "personalizado_x")

        assert stored.bucket == "reports"
        assert stored.url == f"https://storage.test/reports/{stored.path}"
        upload = mock_supabase.storage.uploads[("reports", stored.path)]
        assert upload["bytes"] == b"%PDF-1.4"
        assert upload["options"]["content-type"] == "application/pdf"
        assert upload["options"]["upsert"] == "true"

    def test_content_type_and_extension_passed(self, mock_supabase):
        service = ReportStorageService(client=mock_supabase, bucket="reports", prefix="relatorios")
        stored = service.persist(b"PK", "x", content_type="application/xlsx", extension="xlsx")

        assert stored.path.endswith(".xlsx")
        assert mock_supabase.storage.uploads[("reports", stored.path)]["options"]["content-type"] == "application/xlsx"

    def test_upload_failure_raises_storage_error(self, mock_supabase):
        mock_supabase.storage.error = RuntimeError("Bucket not found")
        service = ReportStorageService(client=mock_supabase, bucket="missing", prefix="relatorios")

        with pytest.raises(StorageError) as exc_info:
            service.persist(b"%PDF", "x")

        error = exc_info.value
        assert error.status_code == 503
        assert error.details["phase"] == "storage"
        assert error.details["bucket"] == "missing"
        assert "Bucket not found" in error.message

    def test_url_lookup_failure_raises_storage_error(self):
        client = MagicMock()
        client.storage.from_.return_value.get_public_url.side_effect = RuntimeError("no url")
        service = ReportStorageService(client=client, bucket="reports", prefix="relatorios")

        with pytest.raises(StorageError):
            service.persist(b"%PDF", "x")


class TestClientSelection:
    """Tests for picking the Storage client."""

    def test_service_role_client_when_configured(self):
        admin, anon = MagicMock(), MagicMock()
        with patch("services.report_storage_service.settings") as mock_settings, \
                patch("services.report_storage_service.get_admin_client", return_value=admin), \
                patch("services.report_storage_service.get_supabase_client", return_value=anon):
            mock_settings.storage_configured = True
            service = ReportStorageService(bucket="reports", prefix="relatorios")

        assert service.db is admin

    def test_anon_client_without_service_key(self):
        anon = MagicMock()
        with patch("services.report_storage_service.settings") as mock_settings, \
                patch("services.report_storage_service.get_admin_client") as mock_admin, \
                patch("services.report_storage_service.get_supabase_client", return_value=anon):
            mock_settings.storage_configured = False
            service = ReportStorageService(bucket="reports", prefix="relatorios")

        assert service.db is anon
        mock_admin.assert_not_called()

    def test_anon_client_when_admin_client_fails(self):
        anon = MagicMock()
        with patch("services.report_storage_service.settings") as mock_settings, \
                patch("services.report_storage_service.get_admin_client", return_value=None), \
                patch("services.report_storage_service.get_supabase_client", return_value=anon):
            mock_settings.storage_configured = True
            service = ReportStorageService(bucket="reports", prefix="relatorios")

        assert service.db is anon

    def test_given_client_used_as_is(self, mock_supabase):
        with patch("services.report_storage_service.get_admin_client") as mock_admin:
            service = ReportStorageService(client=mock_supabase)

        assert service.db is mock_supabase
        mock_admin.assert_not_called()
