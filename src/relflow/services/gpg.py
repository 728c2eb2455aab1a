"""GnuPG wrapper used for signed release tags."""

import logging
import subprocess
from dataclasses import dataclass, field

from ..constants import GPG_TIMEOUT

logger = logging.getLogger(__name__)


class GpgError(Exception):
    """gpg command failed."""

    pass


@dataclass
class GpgKey:
    """A secret key as reported by ``gpg --with-colons``."""

    key_id: str
    fingerprint: str = ""
    length: int = 0
    created: str = ""
    expires: str = ""
    uids: list[str] = field(default_factory=list)

    def matches(self, key: str) -> bool:
        """Return True if key refers to this key by id, fingerprint or email."""
        needle = key.upper().removeprefix("0X")
        if self.fingerprint.upper().endswith(needle) or self.key_id.upper().endswith(needle):
            return True
        return any(key.lower() in uid.lower() for uid in self.uids)


def run_gpg(
    *args: str,
    input_text: str | None = None,
    check: bool = True,
    exec_path: str = "gpg",
    timeout: int | None = None,
) -> str:
    """Run gpg and return stripped stdout.

    Raises:
        GpgError: If gpg is missing, times out, or fails with check=True
    """
    cmd = [exec_path, *args]
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout or GPG_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise GpgError(f"gpg timed out after {timeout or GPG_TIMEOUT} seconds") from e
    except FileNotFoundError:
        raise GpgError(f"gpg executable not found: {exec_path}") from None
    if check and result.returncode != 0:
        raise GpgError(f"gpg {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout.strip()


def gpg_available(exec_path: str = "gpg") -> bool:
    """Return True if gpg can be executed."""
    try:
        run_gpg("--version", exec_path=exec_path)
    except GpgError:
        return False
    return True


def parse_colon_listing(output: str) -> list[GpgKey]:
    """Parse ``--with-colons`` secret key output into GpgKey objects."""
    keys: list[GpgKey] = []
    current: GpgKey | None = None
    for line in output.splitlines():
        fields = line.split(":")
        record = fields[0]
        if record == "sec":
            current = GpgKey(
                key_id=fields[4],
                length=int(fields[2] or 0),
                created=fields[5],
                expires=fields[6],
            )
            keys.append(current)
        elif record == "fpr" and current is not None and not current.fingerprint:
            current.fingerprint = fields[9]
        elif record == "uid" and current is not None:
            current.uids.append(fields[9])
        elif record == "ssb":
            # Subkey records belong to the primary key already captured
            continue
    return keys


def list_secret_keys(exec_path: str = "gpg") -> list[GpgKey]:
    """List secret keys available for signing."""
    output = run_gpg(
        "--list-secret-keys", "--with-colons", "--keyid-format", "LONG", exec_path=exec_path
    )
    return parse_colon_listing(output)


def find_secret_key(key: str, exec_path: str = "gpg") -> GpgKey | None:
    """Find a secret key by id, fingerprint suffix or email."""
    return next((k for k in list_secret_keys(exec_path) if k.matches(key)), None)


def export_public_key(key: str, exec_path: str = "gpg") -> str:
    """Export an ASCII-armored public key.

    Raises:
        GpgError: If nothing was exported
    """
    armored = run_gpg("--armor", "--export", key, exec_path=exec_path)
    if "BEGIN PGP PUBLIC KEY BLOCK" not in armored:
        raise GpgError(f"No public key found for {key}")
    return armored


def can_sign(key: str, exec_path: str = "gpg") -> bool:
    """Return True if key can produce a signature non-interactively."""
    try:
        run_gpg(
            "--batch",
            "--local-user",
            key,
            "--clearsign",
            input_text="relflow signing test\n",
            exec_path=exec_path,
        )
    except GpgError:
        return False
    return True


def generate_key(name: str, email: str, expire: str = "2y", exec_path: str = "gpg") -> None:
    """Generate an RSA 4096 signing key in batch mode.

    gpg prompts for the passphrase through its configured pinentry.
    """
    params = "\n".join(
        [
            "Key-Type: RSA",
            "Key-Length: 4096",
            "Key-Usage: sign",
            "Subkey-Type: RSA",
            "Subkey-Length: 4096",
            f"Name-Real: {name}",
            f"Name-Email: {email}",
            f"Expire-Date: {expire}",
            "%commit",
            "",
        ]
    )
    run_gpg("--batch", "--generate-key", input_text=params, exec_path=exec_path, timeout=300)
