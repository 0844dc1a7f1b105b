class UnsealerError(Exception):
    """Base class for every error raised by the unsealer."""


class ConfigError(UnsealerError):
    """Missing or malformed configuration. Fatal at startup."""


class DirectoryError(UnsealerError):
    """A single service lookup against the cluster API failed."""


class DiscoveryError(UnsealerError):
    """The service could not be resolved to any address. Fatal."""


class InstanceError(UnsealerError):
    """
    A failure scoped to one Vault instance.

    Carries the address and the phase it happened in so the log line
    can be attributed without looking at the traceback.
    """

    phase = "instance"

    def __init__(self, address, cause):
        self.address = address
        self.cause = cause
        super().__init__(f"{self.phase} failed for {address}: {cause}")


class ProbeError(InstanceError):
    phase = "probe"


class ActuationError(InstanceError):
    phase = "unseal"
