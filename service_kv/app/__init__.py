"""
Key-Value Gateway service package.

The gateway exposes a byte-oriented key-value API over HTTP and forwards
every operation to Redis, enforcing:
- Admission control: load shedding in front of a concurrency limiter
- A per-request timeout
- gzip compression on reads
- Bearer authorization on the `/admin` sub-tree

Structure:
- app.main: service wiring, CLI and process bootstrap.
- app.routes: URL layout, binding paths to handlers.
- app.handlers: the key-value operations themselves.
- app.pipeline: ordered middleware stages and their assembly.
- app.store: the pooled Redis client.
"""

__version__ = "1.0.0"
