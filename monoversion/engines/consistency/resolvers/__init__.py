"""Lockfile resolvers — auto-registered on import."""

from monoversion.engines.consistency.resolvers import (
    pnpm,  # noqa: F401
)
