"""
Seal-status probe and unseal submission against a single Vault instance.
"""

from dataclasses import dataclass, field

import requests

from vault_unsealer.errors import ActuationError, ProbeError

SEAL_STATUS_PATH = "v1/sys/seal-status"
UNSEAL_PATH = "v1/sys/unseal"
HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class SealStatus:
    sealed: bool
    initialized: bool
    type: str = ""
    t: int = 0
    n: int = 0
    progress: int = 0
    nonce: str = ""
    version: str = ""
    build_date: str = ""
    migration: bool = False
    recovery_seal: bool = False
    storage_type: str = ""

    @property
    def threshold(self):
        return self.t

    @property
    def issued(self):
        return self.n

    @classmethod
    def from_json(cls, body):
        if not isinstance(body, dict):
            raise ValueError(f"expected a JSON object, got {type(body).__name__}")
        for required in ("sealed", "initialized"):
            if not isinstance(body.get(required), bool):
                raise ValueError(f"field {required!r} missing or not a boolean")
        return cls(
            sealed=body["sealed"],
            initialized=body["initialized"],
            type=body.get("type") or "",
            t=body.get("t") or 0,
            n=body.get("n") or 0,
            progress=body.get("progress") or 0,
            nonce=body.get("nonce") or "",
            version=body.get("version") or "",
            build_date=body.get("build_date") or "",
            migration=bool(body.get("migration")),
            recovery_seal=bool(body.get("recovery_seal")),
            storage_type=body.get("storage_type") or "",
        )


@dataclass(frozen=True)
class Ack:
    address: str
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def sealed(self):
        return self.body.get("sealed")

    @property
    def progress(self):
        return self.body.get("progress")


def instance_url(address, port, path):
    if ":" in address and not address.startswith("["):
        address = f"[{address}]"
    return f"http://{address}:{port}/{path}"


def probe(session, address, port, timeout):
    """
    Fetch and decode the seal status of the instance at address.

    Transport failures, error statuses and undecodable bodies all raise
    ProbeError. Nothing is retried here.
    """
    if not address:
        raise ValueError("address must not be empty")
    try:
        response = session.get(
            instance_url(address, port, SEAL_STATUS_PATH),
            headers=HEADERS,
            timeout=timeout,
        )
        response.raise_for_status()
        return SealStatus.from_json(response.json())
    except requests.exceptions.RequestException as e:
        raise ProbeError(address, e) from e
    except ValueError as e:
        # Covers JSONDecodeError and the shape checks in from_json.
        raise ProbeError(address, f"malformed seal status: {e}") from e


def unseal(session, address, port, key, timeout):
    """
    Submit the full unseal key to the instance at address.

    Safe to call on an instance that is already unsealed: Vault answers
    with its current status. The key never appears in a raised error.
    """
    if not address:
        raise ValueError("address must not be empty")
    try:
        response = session.post(
            instance_url(address, port, UNSEAL_PATH),
            json={"key": key},
            headers=HEADERS,
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise ActuationError(address, e) from e

    if not response.ok:
        raise ActuationError(address, f"HTTP {response.status_code}: {response.text[:200]}")

    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return Ack(address=address, status_code=response.status_code, body=body)
