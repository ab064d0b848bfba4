"""
store.py

Transfer state machine.

State is an immutable tuple of `Transfer` ordered by creation. It only changes through
`transition`, a pure function of the previous state and one event:

    uploading -> success
    uploading -> failed

Progress and status events for unknown or terminal transfers leave the state as is.
"""
from collections.abc import Callable
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from bucket_client.logger import get_logger
from bucket_client.models import Transfer, TransferStatus, TransferSummary

logger = get_logger(__name__)

TransferState = tuple[Transfer, ...]
Listener = Callable[[TransferState], None]


class TransferEventType(Enum):
    STARTED = "started"
    PROGRESS_UPDATED = "progress_updated"
    STATUS_UPDATED = "status_updated"


class Started(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[TransferEventType.STARTED] = TransferEventType.STARTED
    id: str
    name: str
    path: str
    bucket_id: Optional[str] = None


class ProgressUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[TransferEventType.PROGRESS_UPDATED] = TransferEventType.PROGRESS_UPDATED
    id: str
    progress: int = Field(ge=0, le=100)


class StatusUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[TransferEventType.STATUS_UPDATED] = TransferEventType.STATUS_UPDATED
    id: str
    status: TransferStatus
    error: Optional[str] = None


TransferEvent = Union[Started, ProgressUpdated, StatusUpdated]


def _replace(state: TransferState, transfer_id: str, **changes) -> TransferState:
    for index, transfer in enumerate(state):
        if transfer.id != transfer_id:
            continue
        if transfer.status.is_terminal:
            return state
        if all(getattr(transfer, key) == value for key, value in changes.items()):
            return state
        return state[:index] + (transfer.model_copy(update=changes),) + state[index + 1:]
    return state


def transition(state: TransferState, event: TransferEvent) -> TransferState:
    if event.type is TransferEventType.STARTED:
        if any(transfer.id == event.id for transfer in state):
            return state
        transfer = Transfer(id=event.id, name=event.name, path=event.path, bucket_id=event.bucket_id)
        return state + (transfer,)

    if event.type is TransferEventType.PROGRESS_UPDATED:
        return _replace(state, event.id, progress=event.progress)

    if event.type is TransferEventType.STATUS_UPDATED:
        if not event.status.is_terminal:
            return state
        return _replace(state, event.id, status=event.status, error=event.error)

    return state


def summarize(state: TransferState) -> TransferSummary:
    completed = sum(1 for transfer in state if transfer.status is TransferStatus.SUCCESS)
    failed = sum(1 for transfer in state if transfer.status is TransferStatus.FAILED)
    return TransferSummary(
        total=len(state),
        active=len(state) - completed - failed,
        completed=completed,
        failed=failed,
    )


class TransferStore:
    """
    Holds the current state and applies events one at a time.

    Listeners are called with the new snapshot after every change.
    """

    def __init__(self):
        self._state: TransferState = ()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> TransferState:
        return self._state

    def get(self, transfer_id: str) -> Optional[Transfer]:
        for transfer in self._state:
            if transfer.id == transfer_id:
                return transfer
        return None

    def dispatch(self, event: TransferEvent) -> TransferState:
        previous = self._state
        self._state = transition(previous, event)
        if self._state is not previous:
            self._notify()
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Transfer listener failed")
