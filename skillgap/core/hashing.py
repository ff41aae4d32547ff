"""
Content fingerprinting for (resume, job description) pairs.

The fingerprint is the cache and dedup key for analyses: identical inputs
always map to the same 64-char lowercase SHA-256 hex digest, in any process.
"""
import hashlib
import re

FINGERPRINT_LENGTH = 64
_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def content_hash(resume_text: str, job_description: str) -> str:
    """
    SHA-256 over the UTF-8 encoded pair.

    The resume is length-prefixed and followed by a unit separator, so no
    choice of inputs can shift bytes from one field into the other.
    """
    resume = resume_text.encode("utf-8")
    job = job_description.encode("utf-8")

    digest = hashlib.sha256()
    digest.update(str(len(resume)).encode("ascii") + b":")
    digest.update(resume)
    digest.update(b"\x1f")
    digest.update(job)
    return digest.hexdigest()


def is_valid_hash(value: str) -> bool:
    """Exact length and lowercase hex check."""
    return isinstance(value, str) and bool(_FINGERPRINT_RE.match(value))
