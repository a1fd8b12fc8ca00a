"""Environment reduction against the host baseline.

``docker exec`` and ``docker run`` do not inherit the caller's environment,
so only the variables that differ from what the host already has need to
be passed explicitly.
"""

from __future__ import annotations

from collections.abc import Mapping


def diff_environment(candidate: Mapping[str, str], baseline: Mapping[str, str]) -> dict[str, str]:
    """Return the entries of *candidate* that are new or changed vs *baseline*.

    Keeps *candidate*'s insertion order.
    """
    return {
        key: value
        for key, value in candidate.items()
        if key not in baseline or baseline[key] != value
    }


def env_tokens(env: Mapping[str, str]) -> list[str]:
    """Render *env* as ``KEY=VALUE`` tokens, sorted by the full token."""
    return sorted(f"{key}={value}" for key, value in env.items())
