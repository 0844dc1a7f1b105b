"""
Shared fixtures: a fake Vault fleet behind a fake requests session.
"""

import json
import threading

import pytest
import requests

from vault_unsealer.config import Settings
from vault_unsealer.credentials import Credentials

UNSEAL_KEY = "s3cr3t-unseal-key"


def seal_status_body(sealed, **overrides):
    body = {
        "type": "shamir",
        "initialized": True,
        "sealed": sealed,
        "t": 1,
        "n": 1,
        "progress": 0,
        "nonce": "",
        "version": "1.15.2",
        "build_date": "2023-11-06T11:33:28Z",
        "migration": False,
        "recovery_seal": False,
        "storage_type": "raft",
    }
    body.update(overrides)
    return body


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class FakeInstance:
    """
    One Vault node. Reports sealed until a successful unseal, after which
    it stays unsealed and keeps answering unseal calls with 200.
    """

    def __init__(self, sealed=True, probe_error=None, probe_response=None,
                 unseal_error=None, unseal_status=200):
        self.sealed = sealed
        self.probe_error = probe_error
        self.probe_response = probe_response
        self.unseal_error = unseal_error
        self.unseal_status = unseal_status


class FakeSession:
    def __init__(self, instances):
        self.instances = instances
        self.calls = []
        self._lock = threading.Lock()

    @staticmethod
    def _address(url):
        host = url.split("//", 1)[1].split("/", 1)[0].rsplit(":", 1)[0]
        return host.strip("[]")

    def _record(self, method, url, **kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))

    def get(self, url, **kwargs):
        self._record("GET", url, **kwargs)
        instance = self.instances[self._address(url)]
        if instance.probe_error is not None:
            raise instance.probe_error
        if instance.probe_response is not None:
            return instance.probe_response
        return FakeResponse(200, seal_status_body(instance.sealed))

    def post(self, url, **kwargs):
        self._record("POST", url, **kwargs)
        instance = self.instances[self._address(url)]
        if instance.unseal_error is not None:
            raise instance.unseal_error
        if instance.unseal_status >= 400:
            return FakeResponse(instance.unseal_status, {"errors": ["unseal failed"]})
        instance.sealed = False
        return FakeResponse(200, seal_status_body(False))

    def probed(self):
        return [self._address(url) for method, url, _ in self.calls if method == "GET"]

    def unsealed(self):
        return [self._address(url) for method, url, _ in self.calls if method == "POST"]


class FakeDirectory:
    def __init__(self, *results):
        # Each result is a list of addresses or an exception to raise.
        self.results = list(results)
        self.lookups = []

    def resolve(self, service_name):
        self.lookups.append(service_name)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)


@pytest.fixture
def settings():
    return Settings(
        api_server="https://10.96.0.1:443",
        service_name="vault",
        vault_port=8200,
        refresh_time=30,
        request_timeout=5,
    )


@pytest.fixture
def credentials():
    return Credentials(namespace="vault", token="sa-token", unseal_key=UNSEAL_KEY)


@pytest.fixture
def sleeps():
    return []
