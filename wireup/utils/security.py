# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""File staging and redaction helpers for tunnel secrets.

Config and auth files are bind-mounted into the tunnel container, so they
have to exist on the host. They are written owner-only and overwritten
before deletion.
"""

import os
import re
import secrets
import stat
import sys
from pathlib import Path
from typing import Optional

# WireGuard keys are base64 (44 chars); match anything long enough to be a key
_KEY_PATTERN = re.compile(
    r"(?i)(PrivateKey|PublicKey|PresharedKey|Password)\s*=\s*[A-Za-z0-9+/=]{30,}"
)
_SECRET_PATTERN = re.compile(r"(?i)\b(password|secret|token|key)\s*[=:]\s*(?!\[REDACTED\])\S+")

_OVERWRITE_PASSES = 3
_CHUNK_SIZE = 4096


def sanitize_for_logging(message: Optional[str]) -> Optional[str]:
    """Redact private keys, passwords and tokens from a log message."""
    if message is None:
        return None
    sanitized = _KEY_PATTERN.sub(r"\1 = [REDACTED]", message)
    return _SECRET_PATTERN.sub(r"\1 = [REDACTED]", sanitized)


def set_restrictive_permissions(path: Path) -> None:
    """Restrict a file to owner read/write (0600).

    No-op on Windows, where the default ACLs are already per-user.
    """
    if sys.platform.startswith("win"):
        return
    os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)


def write_private_file(path: Path, content: str) -> Path:
    """Write text to a file that is never readable by other users.

    The file is created with 0600 before any content is written.
    """
    path = Path(path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    # O_CREAT honours umask and leaves existing files' modes alone
    set_restrictive_permissions(path)
    return path


def secure_delete(path: Path) -> None:
    """Overwrite a file with random data, then unlink it."""
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return

    if path.is_file() and not path.is_symlink():
        size = path.stat().st_size
        with open(path, "r+b") as f:
            for _ in range(_OVERWRITE_PASSES):
                f.seek(0)
                remaining = size
                while remaining > 0:
                    chunk = min(_CHUNK_SIZE, remaining)
                    f.write(secrets.token_bytes(chunk))
                    remaining -= chunk
                f.flush()
                os.fsync(f.fileno())

    path.unlink()


def secure_delete_directory(directory: Path) -> None:
    """Securely delete every file under a directory, then the directory itself.

    Per-file errors are skipped so one stuck file does not leave the rest of
    the secrets on disk.
    """
    directory = Path(directory)
    if not directory.exists():
        return

    # Deepest paths first so directories are empty when removed
    for path in sorted(directory.rglob("*"), key=lambda p: len(p.parts), reverse=True):
        try:
            if path.is_dir() and not path.is_symlink():
                path.rmdir()
            else:
                secure_delete(path)
        except OSError:
            continue

    try:
        directory.rmdir()
    except OSError:
        pass
