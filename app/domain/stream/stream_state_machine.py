"""Stream state machine for managing per-session stream transitions."""

from app.schemas import StreamState


class StreamStateMachine:
    """State machine for the stream lifecycle of one session.

    State flow with triggers:
    - IDLE -> STARTING (start requested) | STOPPING (stop requested, nothing running)
    - STARTING -> STREAMING (transcoder launched and bound) | IDLE (precondition or launch failure)
    - STREAMING -> STOPPING (stop requested or transcoder exited) | STARTING (restart)
    - STOPPING -> IDLE (binding removed, activity flag cleared)

    STARTING and STOPPING only exist while a start, stop or exit
    reconciliation holds the session lock.
    """

    TRANSITIONS: dict[StreamState, set[StreamState]] = {
        StreamState.IDLE: {StreamState.STARTING, StreamState.STOPPING},
        StreamState.STARTING: {StreamState.STREAMING, StreamState.IDLE},
        StreamState.STREAMING: {StreamState.STOPPING, StreamState.STARTING},
        StreamState.STOPPING: {StreamState.IDLE},
    }

    TRANSIENT_STATES: set[StreamState] = {StreamState.STARTING, StreamState.STOPPING}

    @classmethod
    def can_transition(cls, current: StreamState, new: StreamState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current stream state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_transient(cls, state: StreamState) -> bool:
        return state in cls.TRANSIENT_STATES

    @classmethod
    def get_valid_transitions(cls, state: StreamState) -> set[StreamState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def derive_state(cls, is_active: bool, is_bound: bool) -> StreamState:
        """Settled state from the stored activity flag and the process binding.

        The two agree outside of a start/stop step; if they diverge the stream
        is reported as STREAMING only when a process is actually bound.
        """
        return StreamState.STREAMING if is_bound and is_active else StreamState.IDLE
