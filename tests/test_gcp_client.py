"""Tests for the GCP Secret Manager wrapper."""
from unittest import mock

from secretgen.secrets.domains.gcp_client import GCPSecretClient


class TestGetProjectId:
    """Test suite for project ID resolution."""

    def test_env_var_overrides_config(self, monkeypatch):
        monkeypatch.setenv("GCP_PROJECT", "env-project")
        assert GCPSecretClient(project_id="config-project").get_project_id() == "env-project"

    def test_config_project_used_without_env(self, monkeypatch):
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        assert GCPSecretClient(project_id="config-project").get_project_id() == "config-project"

    def test_none_when_not_configured(self, monkeypatch):
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        assert GCPSecretClient().get_project_id() is None


class TestFetchSecret:
    """Test suite for fetch_secret."""

    def test_reads_latest_version(self):
        """Test that the latest version payload is decoded."""
        client = GCPSecretClient()
        client._client = mock.Mock()
        client._client.access_secret_version.return_value.payload.data = b"c2VjcmV0"

        assert client.fetch_secret("MASTER", "my-project") == "c2VjcmV0"
        client._client.access_secret_version.assert_called_once_with(
            request={"name": "projects/my-project/secrets/MASTER/versions/latest"}
        )

    def test_returns_none_on_error(self):
        """Test that API errors are logged and reported as missing."""
        client = GCPSecretClient()
        client._client = mock.Mock()
        client._client.access_secret_version.side_effect = RuntimeError("permission denied")

        assert client.fetch_secret("MASTER", "my-project") is None
