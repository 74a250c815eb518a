"""Named constants for values that appear in multiple places or need explanation."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Size limits
# ---------------------------------------------------------------------------

# Maximum characters kept from one attached knowledge document.  Content is
# cut at ingestion so a large upload cannot blow up every prompt it is
# injected into.
KNOWLEDGE_MAX_CHARS: int = 50_000

# Maximum characters of a completion result quoted in a log event.
LOG_EXCERPT_CHARS: int = 200

# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------

# Default HTTP read timeout for one completion request when the engine config
# does not set its own ``timeout_s``.
COMPLETION_HTTP_TIMEOUT_S: float = 120.0

# Wall-clock bound the gateway puts around any backend call, including
# backends that do no I/O of their own.  A call that exceeds it is reported
# as CompletionUnavailable and fails (or degrades) its task.
COMPLETION_WAIT_TIMEOUT_S: float = 360.0

# ---------------------------------------------------------------------------
# Observer stream
# ---------------------------------------------------------------------------

# Per-subscriber queue bound.  A subscriber that falls this far behind starts
# losing events instead of slowing down task execution.
SUBSCRIBER_QUEUE_SIZE: int = 512

# Seconds between SSE keep-alive comments on an idle event stream.
SSE_KEEPALIVE_S: float = 15.0
