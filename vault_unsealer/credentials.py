from dataclasses import dataclass, field
from pathlib import Path

from vault_unsealer.errors import ConfigError

UNSEAL_KEY_PATH = "/var/run/vault/key"
SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
NAMESPACE_PATH = f"{SERVICE_ACCOUNT_DIR}/namespace"
TOKEN_PATH = f"{SERVICE_ACCOUNT_DIR}/token"


@dataclass(frozen=True)
class Credentials:
    namespace: str
    token: str = field(repr=False)
    unseal_key: str = field(repr=False)


def read_file(path):
    """
    Read a mounted secret, dropping the trailing newline.
    """
    try:
        content = Path(path).read_text()
    except OSError as e:
        raise ConfigError(f"Error reading file {path}: {e}") from e
    content = content.removesuffix("\n")
    if not content.strip():
        raise ConfigError(f"File {path} is empty")
    return content


def load_credentials(
    key_path=UNSEAL_KEY_PATH,
    namespace_path=NAMESPACE_PATH,
    token_path=TOKEN_PATH,
):
    return Credentials(
        namespace=read_file(namespace_path).strip(),
        token=read_file(token_path).strip(),
        unseal_key=read_file(key_path),
    )
