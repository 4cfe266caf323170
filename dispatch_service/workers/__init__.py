"""Background worker job definitions.

- notifications/: email and SMS delivery jobs (single and batch)

For queue infrastructure (brokers, middleware), see `infra/tasks/`.

Task definitions are registered with the brokers on import.
"""

from __future__ import annotations

__all__: list[str] = []
