"""HTTP runtime for registered triggers.

Design intent:
- Keep trigger semantics (names, manifest, envelopes) in `cloud_triggers.*`
- Keep server-specific concerns (routing, CORS, control endpoints) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from cloud_triggers.server.app import create_app
