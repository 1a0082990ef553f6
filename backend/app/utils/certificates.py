"""
Certificates - Load the Swish client certificate and private key.

Both values come from configuration as either raw PEM text (optionally with
literal "\\n" escapes, as environment variables often carry them) or
base64-encoded PEM. The pair is resolved once at startup; an unusable pair
disables the Swish client instead of failing the boot.
"""
import base64
import binascii
import logging
import os
import re
import tempfile
from typing import Optional

logger = logging.getLogger(__name__)

PEM_BLOCK = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----")


def decode_pem(value: str | None) -> Optional[str]:
    """Return PEM text from raw or base64 input, or None if neither decodes."""
    if not value or not value.strip():
        return None

    text = value.strip()
    if "-----BEGIN" in text:
        return text.replace("\\n", "\n")

    try:
        decoded = base64.b64decode("".join(text.split()), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    if "-----BEGIN" not in decoded:
        return None
    return decoded.strip()


def pem_labels(pem: str) -> list[str]:
    """Labels of every PEM block, e.g. ["CERTIFICATE", "PRIVATE KEY"]."""
    return PEM_BLOCK.findall(pem)


class CertificatePair:
    """A PEM certificate chain and its private key."""

    def __init__(self, cert_pem: str, key_pem: str):
        self.cert_pem = cert_pem
        self.key_pem = key_pem
        self._files: Optional[tuple[str, str]] = None

    def as_files(self) -> tuple[str, str]:
        """Write the PEMs to owner-only temp files (once) and return their paths.

        httpx/ssl only accept certificate material from the filesystem.
        """
        if self._files is None:
            self._files = (_write_private(self.cert_pem, ".crt"), _write_private(self.key_pem, ".key"))
        return self._files

    def cleanup(self) -> None:
        """Remove the temp files written by as_files(), if any."""
        if self._files is None:
            return
        for path in self._files:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        self._files = None

    def describe(self) -> dict:
        """Non-secret summary for diagnostics."""
        return {
            "cert_blocks": pem_labels(self.cert_pem),
            "key_blocks": pem_labels(self.key_pem),
            "cert_length": len(self.cert_pem),
            "key_length": len(self.key_pem),
        }


def _write_private(content: str, suffix: str) -> str:
    fd, path = tempfile.mkstemp(prefix="swish-", suffix=suffix)
    with os.fdopen(fd, "w") as f:
        f.write(content)
        if not content.endswith("\n"):
            f.write("\n")
    os.chmod(path, 0o600)
    return path


def load_certificate_pair(cert: str | None, key: str | None) -> Optional[CertificatePair]:
    """Resolve the configured certificate and key.

    Returns:
        CertificatePair, or None when either part is missing or is not PEM
        with the expected CERTIFICATE / PRIVATE KEY blocks.
    """
    if not cert or not key:
        logger.warning("SWISH_CERT or SWISH_KEY not set; Swish API calls are disabled")
        return None

    cert_pem = decode_pem(cert)
    key_pem = decode_pem(key)
    if cert_pem is None or key_pem is None:
        logger.warning("SWISH_CERT/SWISH_KEY are neither PEM nor base64-encoded PEM")
        return None

    if "CERTIFICATE" not in pem_labels(cert_pem):
        logger.warning("SWISH_CERT does not contain a CERTIFICATE block")
        return None
    if not any(label.endswith("PRIVATE KEY") for label in pem_labels(key_pem)):
        logger.warning("SWISH_KEY does not contain a PRIVATE KEY block")
        return None

    logger.info("Swish client certificate loaded")
    return CertificatePair(cert_pem, key_pem)
