"""
Service discovery through the Kubernetes Endpoints API.
"""

import logging

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from vault_unsealer.errors import DirectoryError

logger = logging.getLogger(__name__)


def build_api(api_server, token, verify_ssl=False):
    """
    Create a CoreV1Api authenticated with the service account bearer token.
    """
    configuration = client.Configuration()
    configuration.host = api_server
    configuration.api_key = {"authorization": token}
    configuration.api_key_prefix = {"authorization": "Bearer"}
    configuration.verify_ssl = verify_ssl
    if not verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return client.CoreV1Api(client.ApiClient(configuration))


def endpoint_addresses(endpoints):
    """
    Collect every backing IP of an Endpoints object, in order, without duplicates.

    Not-ready addresses are included: a sealed Vault pod fails its readiness
    check and is exactly the one that needs attention.
    """
    seen = []
    for subset in endpoints.subsets or []:
        for address in (subset.addresses or []) + (subset.not_ready_addresses or []):
            if address.ip and address.ip not in seen:
                seen.append(address.ip)
    return seen


class ClusterDirectory:
    def __init__(self, api, namespace, timeout=None):
        self.api = api
        self.namespace = namespace
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, credentials):
        api = build_api(settings.api_server, credentials.token, settings.verify_ssl)
        return cls(api, credentials.namespace, timeout=settings.request_timeout)

    def resolve(self, service_name):
        """
        Return the current addresses backing service_name.

        Raises DirectoryError if the lookup itself fails.
        """
        try:
            endpoints = self.api.read_namespaced_endpoints(
                service_name, self.namespace, _request_timeout=self.timeout
            )
        except ApiException as e:
            raise DirectoryError(
                f"Error reading endpoints {self.namespace}/{service_name}: {e.status} {e.reason}"
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise DirectoryError(
                f"Error reading endpoints {self.namespace}/{service_name}: {e}"
            ) from e

        addresses = endpoint_addresses(endpoints)
        logger.debug("Resolved %s/%s to %s", self.namespace, service_name, addresses)
        return addresses
