import os
from unittest.mock import MagicMock, patch

import pytest

from docsign.services.storage import ArtifactStorage


def _configure(mock_settings):
    mock_settings.s3_endpoint_url = "http://localhost:9000"
    mock_settings.s3_access_key = "test-key"
    mock_settings.s3_secret_key = "test-secret"
    mock_settings.s3_region = "us-east-1"
    mock_settings.s3_bucket_name = "docsign-artifacts"
    mock_settings.s3_presigned_url_expiry = 3600


class TestArtifactStorage:
    def test_output_file_name_format(self):
        name = ArtifactStorage.output_file_name()
        assert name.startswith("completed_")
        assert name.endswith(".pdf")
        assert name != ArtifactStorage.output_file_name()

    def test_generate_storage_key_format(self):
        key = ArtifactStorage.generate_storage_key("doc-123", "completed_x.pdf")
        assert key == "completed/doc-123/completed_x.pdf"

    def test_is_configured_false_by_default(self):
        assert ArtifactStorage.is_configured() is False

    @patch("docsign.services.storage.settings")
    def test_is_configured_true(self, mock_settings):
        _configure(mock_settings)
        assert ArtifactStorage.is_configured() is True

    @patch("docsign.services.storage.settings")
    def test_output_path_creates_directory(self, mock_settings, tmp_path):
        mock_settings.output_dir = str(tmp_path / "out")
        path = ArtifactStorage.output_path("completed_a.pdf")
        assert path == os.path.join(str(tmp_path / "out"), "completed_a.pdf")
        assert os.path.isdir(tmp_path / "out")

    @patch("docsign.services.storage.boto3")
    @patch("docsign.services.storage.settings")
    def test_upload(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        ArtifactStorage.upload("completed/doc/file.pdf", b"%PDF-1.4")
        mock_client.put_object.assert_called_once_with(
            Bucket="docsign-artifacts",
            Key="completed/doc/file.pdf",
            Body=b"%PDF-1.4",
            ContentType="application/pdf",
        )

    @patch("docsign.services.storage.boto3")
    @patch("docsign.services.storage.settings")
    def test_generate_download_url(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_client.generate_presigned_url.return_value = "https://example.com/download"
        mock_boto3.client.return_value = mock_client

        url = ArtifactStorage.generate_download_url("completed/doc/file.pdf")
        assert url == "https://example.com/download"
        mock_client.generate_presigned_url.assert_called_once()

    def test_upload_without_configuration(self):
        with pytest.raises(RuntimeError) as exc:
            ArtifactStorage.upload("key", b"")
        assert "not configured" in str(exc.value)
