"""GCP Secret Manager client wrapper, used to fetch the master key."""
import os
import logging
from typing import Optional
from google.cloud import secretmanager

logger = logging.getLogger(__name__)


class GCPSecretClient:
    """Wrapper around GCP Secret Manager client."""

    def __init__(self, project_id: Optional[str] = None):
        self._client = None
        self._project_id = project_id

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_project_id(self) -> Optional[str]:
        """
        Get GCP project ID from environment variable or config.

        Priority order:
        1. GCP_PROJECT environment variable (allows override)
        2. master_key.project_id from secretgen.yml

        Returns:
            Project ID string, or None if not found
        """
        gcp_project_env = os.getenv("GCP_PROJECT")
        if gcp_project_env:
            logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
            return gcp_project_env

        if self._project_id:
            logger.debug(f"Using project_id from config: {self._project_id}")
            return self._project_id

        logger.error("Project ID not found. Please set GCP_PROJECT environment variable or master_key.project_id in secretgen.yml")
        return None

    def fetch_secret(self, secret_name: str, project_id: str) -> Optional[str]:
        """
        Fetch secret from GCP Secret Manager.

        Args:
            secret_name: Name of the secret
            project_id: GCP project ID

        Returns:
            Secret value or None if fetch fails
        """
        try:
            name = f"projects/{project_id}/secrets/{secret_name}/versions/latest"
            response = self.client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")
        except Exception as e:
            logger.warning(f"GCP fetch failed for {secret_name}: {e}")
            return None
