"""
The discover / probe / unseal loop.

Each cycle resolves the Vault service to its current addresses, probes
every address once, and submits the unseal key only to the instances that
reported themselves sealed in that same cycle. Nothing is remembered from
one cycle to the next.

Per-instance failures are logged and never stop the cycle. Only a failed
or empty discovery is fatal, raised as DiscoveryError once the configured
attempts are used up.
"""

import concurrent.futures
import enum
import logging
import time
from dataclasses import dataclass, field

import requests

from vault_unsealer import unseal as vault
from vault_unsealer.errors import ActuationError, DirectoryError, DiscoveryError, ProbeError

logger = logging.getLogger(__name__)


class InstanceOutcome(enum.Enum):
    UNSEALED = "unsealed"
    ALREADY_UNSEALED = "already_unsealed"
    PROBE_FAILED = "probe_failed"
    ACTUATION_FAILED = "actuation_failed"
    ERROR = "error"


@dataclass
class CycleReport:
    unsealed: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    probe_failures: list = field(default_factory=list)
    actuation_failures: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    def record(self, address, outcome):
        {
            InstanceOutcome.UNSEALED: self.unsealed,
            InstanceOutcome.ALREADY_UNSEALED: self.skipped,
            InstanceOutcome.PROBE_FAILED: self.probe_failures,
            InstanceOutcome.ACTUATION_FAILED: self.actuation_failures,
            InstanceOutcome.ERROR: self.errors,
        }[outcome].append(address)

    @property
    def total(self):
        return (
            len(self.unsealed)
            + len(self.skipped)
            + len(self.probe_failures)
            + len(self.actuation_failures)
            + len(self.errors)
        )


class Reconciler:
    def __init__(self, settings, credentials, directory, session=None, sleep=time.sleep):
        self.settings = settings
        self.credentials = credentials
        self.directory = directory
        self.session = session or requests.Session()
        self.sleep = sleep

    def discover(self):
        """
        Resolve the configured service to a non-empty list of addresses.

        Raises DiscoveryError when every attempt failed or came back empty.
        """
        name = self.settings.service_name
        attempts = self.settings.discovery_attempts
        for attempt in range(1, attempts + 1):
            try:
                addresses = self.directory.resolve(name)
                if addresses:
                    return addresses
                problem = f"service {name} has no backing addresses"
            except DirectoryError as e:
                problem = str(e)

            if attempt < attempts:
                logger.warning(
                    "Discovery attempt %d/%d failed: %s; retrying in %ss",
                    attempt, attempts, problem, self.settings.discovery_backoff,
                )
                self.sleep(self.settings.discovery_backoff)

        raise DiscoveryError(f"Unable to discover Vault instances after {attempts} attempt(s): {problem}")

    def reconcile_instance(self, address):
        s = self.settings
        try:
            status = vault.probe(self.session, address, s.vault_port, s.request_timeout)
        except ProbeError as e:
            logger.error("Error fetching seal status, skipping instance at IP %s this cycle: %s", address, e.cause)
            return InstanceOutcome.PROBE_FAILED

        if not status.sealed:
            logger.info("Vault instance at IP %s is already unsealed.", address)
            return InstanceOutcome.ALREADY_UNSEALED

        try:
            ack = vault.unseal(self.session, address, s.vault_port, self.credentials.unseal_key, s.request_timeout)
        except ActuationError as e:
            logger.error("Error unsealing instance at IP %s: %s", address, e.cause)
            return InstanceOutcome.ACTUATION_FAILED

        logger.info(
            "Sent unseal request to instance at IP %s (sealed=%s, progress=%s/%s).",
            address, ack.sealed, ack.progress, status.threshold,
        )
        return InstanceOutcome.UNSEALED

    def _guarded(self, address):
        try:
            return self.reconcile_instance(address)
        except Exception:
            logger.exception("Unexpected error reconciling instance at IP %s", address)
            return InstanceOutcome.ERROR

    def run_cycle(self):
        addresses = self.discover()
        report = CycleReport()

        workers = min(self.settings.workers, len(addresses))
        if workers <= 1:
            for address in addresses:
                report.record(address, self._guarded(address))
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                future_to_address = {
                    executor.submit(self._guarded, address): address for address in addresses
                }
                for future in concurrent.futures.as_completed(future_to_address):
                    report.record(future_to_address[future], future.result())

        logger.info(
            "Vault unseal actions complete. instances=%d unsealed=%d already_unsealed=%d "
            "probe_failures=%d unseal_failures=%d errors=%d",
            report.total, len(report.unsealed), len(report.skipped),
            len(report.probe_failures), len(report.actuation_failures), len(report.errors),
        )
        return report

    def run_forever(self, max_cycles=None):
        """
        Run cycles separated by the refresh interval until DiscoveryError.

        max_cycles bounds the loop; None means forever.
        """
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_cycle()
            cycles += 1
            self.sleep(self.settings.refresh_time)
