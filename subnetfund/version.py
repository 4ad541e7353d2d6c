from __future__ import annotations

"""
subnetfund.version — semantic version string with optional git-describe suffix.

Rules:
- BASE_VERSION is the semver for this package.
- If SUBNETFUND_VERSION is set in the environment, that wins.
- Inside a git checkout, a PEP440 local suffix derived from
  `git describe --tags --dirty --always --abbrev=7` is appended, e.g.:
    0.3.0+3.gabc1234          (3 commits after tag v0.3.0)
    0.3.0+gabc1234.dirty      (no tag, dirty tree)
- Without git, BASE_VERSION is returned unchanged.
"""


import os
import re
import subprocess
from typing import Optional

# Bump this on intentional releases.
BASE_VERSION = "0.3.0"


def _git_describe() -> Optional[str]:
    try:
        out = subprocess.check_output(
            ["git", "describe", "--tags", "--dirty", "--always", "--abbrev=7"],
            stderr=subprocess.DEVNULL,
            cwd=os.path.dirname(os.path.abspath(__file__)),
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode("utf-8", "replace").strip() or None


_PEP440_LOCAL_CLEAN = re.compile(r"[^a-zA-Z0-9.]+")


def _pep440_local_from_describe(desc: str) -> str:
    """
    Turn `v0.3.0-3-gabc1234-dirty` into `3.gabc1234.dirty`.

    A leading tag equal to BASE_VERSION is dropped, separators become dots and
    anything outside [a-zA-Z0-9.] is collapsed.
    """
    s = desc
    for prefix in (f"v{BASE_VERSION}-", f"{BASE_VERSION}-"):
        if s.startswith(prefix):
            s = s[len(prefix):]
            break
    s = s.replace("-", ".").replace("+", ".")
    s = _PEP440_LOCAL_CLEAN.sub(".", s)
    return re.sub(r"\.{2,}", ".", s).strip(".")


def build_version() -> str:
    env = os.getenv("SUBNETFUND_VERSION")
    if env:
        return env

    desc = _git_describe()
    if not desc:
        return BASE_VERSION

    local = _pep440_local_from_describe(desc)
    return f"{BASE_VERSION}+{local}" if local else BASE_VERSION


__version__ = build_version()


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version", "BASE_VERSION"]
