import logging

import requests

from jupyter_hpc.config import ClusterConfig
from jupyter_hpc.exceptions import TokenFetchError

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Oops!"


class ProxyClient:
    def __init__(self, cluster: ClusterConfig, timeout: int = 30, verify: bool = True) -> None:
        """Initialize the reverse-proxy client.

        Args:
            cluster: Cluster whose proxy hands out the token
            timeout: Connection timeout in seconds
            verify: Whether to validate HTTPS certificates
        """
        self.cluster = cluster
        self.timeout = timeout
        self.verify = verify

    def fetch_token(self) -> str:
        """Request a one-time access token from the proxy.

        Returns:
            The token, i.e. the last whitespace-delimited field of the response body

        Raises:
            TokenFetchError: On network errors, non-200 responses, "Oops!" bodies or empty bodies
        """
        url = self.cluster.token_url
        logger.debug(f"Requesting proxy token from {url}")

        try:
            response = requests.get(url, timeout=self.timeout, verify=self.verify)
        except requests.exceptions.RequestException as e:
            raise TokenFetchError(f"Unable to reach reverse proxy at {url}: {e}") from e

        if response.status_code != 200:
            raise TokenFetchError(f"Error fetching token from {url}: {response.status_code}")

        return parse_token(response.text)


def parse_token(body: str) -> str:
    """Extract the token from a proxy response body"""
    text = body.strip()

    if text.startswith(ERROR_PREFIX):
        raise TokenFetchError(f"Reverse proxy refused to issue a token: {text}")

    fields = text.split()
    if not fields:
        raise TokenFetchError("Reverse proxy returned an empty response")

    return fields[-1]
