"""Stream lifecycle states."""

from enum import Enum


class StreamState(str, Enum):
    """Per-session stream states.

    State Transition Flow:

    IDLE → STARTING → STREAMING → STOPPING → IDLE
              ↓           ↓
             IDLE   IDLE (process exited on its own)

    State Descriptions:
    - IDLE: No stream session, or stream session with is_active=False.
    - STARTING: Transient, inside the start call while the transcoder is launched.
    - STREAMING: is_active=True and a transcoder process is bound.
    - STOPPING: Transient, inside the stop call or exit reconciliation.
    """

    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"

    def __str__(self) -> str:
        return self.value


__all__ = ["StreamState"]
