from __future__ import annotations

"""Extraction state machine.

INIT -> CHALLENGE -> DESTINATION -> DECRYPTING -> UNPACKING -> DONE, with
ERROR reachable from every state. Each transition takes the current
ExtractionRun and returns the next one; the passphrase supplied at the
challenge travels inside that value.
"""

import enum
import logging
import os
import zipfile
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple, Union

from . import cipher
from .bundle import Bundle, BundleMetadata, parse_bundle
from .container import ContainerEntry, open_container, unpack_container
from .errors import InvalidKey, NoDestination, SfxError
from .keyderive import derive_key


log = logging.getLogger(__name__)


class State(enum.Enum):
    INIT = "init"
    CHALLENGE = "challenge"
    DESTINATION = "destination"
    DECRYPTING = "decrypting"
    UNPACKING = "unpacking"
    DONE = "done"
    ERROR = "error"


TERMINAL = (State.DONE, State.ERROR)

PassphrasePrompt = Callable[[BundleMetadata], Optional[str]]
DestinationPrompt = Callable[[BundleMetadata], Optional[str]]


@dataclass(frozen=True)
class ExtractionRun:
    state: State
    source: Union[bytes, Bundle]
    bundle: Optional[Bundle] = None
    secret: str = ""
    destination: Optional[str] = None
    container: Optional[zipfile.ZipFile] = None
    written: Tuple[str, ...] = ()
    error: Optional[BaseException] = None
    failed_in: Optional[State] = None

    @property
    def ok(self) -> bool:
        return self.state == State.DONE


def _no_passphrase(_meta: BundleMetadata) -> Optional[str]:
    return None


def _no_destination(_meta: BundleMetadata) -> Optional[str]:
    return None


class Extractor:
    """Drive one extraction run through its states.

    Args:
        source: Raw bundle bytes or an already parsed Bundle.
        ask_passphrase: Called once when the bundle carries a challenge.
            Returning None counts as a wrong passphrase.
        choose_destination: Returns the target directory, or None/"" when
            the user declined.
        on_entry: Optional hook invoked before each container entry is written.
    """

    def __init__(
        self,
        source: Union[bytes, Bundle],
        *,
        ask_passphrase: PassphrasePrompt = _no_passphrase,
        choose_destination: DestinationPrompt = _no_destination,
        on_entry: Optional[Callable[[ContainerEntry], None]] = None,
    ):
        self.source = source
        self.ask_passphrase = ask_passphrase
        self.choose_destination = choose_destination
        self.on_entry = on_entry
        self._transitions = {
            State.INIT: self._init,
            State.CHALLENGE: self._challenge,
            State.DESTINATION: self._destination,
            State.DECRYPTING: self._decrypt,
            State.UNPACKING: self._unpack,
        }

    def start(self) -> ExtractionRun:
        return ExtractionRun(state=State.INIT, source=self.source)

    def step(self, run: ExtractionRun) -> ExtractionRun:
        if run.state in TERMINAL:
            return run
        try:
            nxt = self._transitions[run.state](run)
        except (SfxError, OSError) as exc:
            log.debug("%s failed: %s", run.state.value, exc)
            nxt = replace(run, state=State.ERROR, error=exc, failed_in=run.state)
        if nxt.state != run.state:
            log.debug("state %s -> %s", run.state.value, nxt.state.value)
        return nxt

    def run(self) -> ExtractionRun:
        run = self.start()
        while run.state not in TERMINAL:
            run = self.step(run)
        if run.container is not None:
            run.container.close()
        return run

    # -------- transitions --------

    def _init(self, run: ExtractionRun) -> ExtractionRun:
        bundle = run.source if isinstance(run.source, Bundle) else parse_bundle(run.source)
        meta = bundle.metadata
        log.debug(
            "bundle %s: payload %d bytes, blob %d bytes, challenge scheme %d",
            meta.artifact_name,
            meta.payload_size,
            len(bundle.blob),
            meta.challenge.scheme,
        )
        return replace(run, state=State.CHALLENGE, bundle=bundle)

    def _challenge(self, run: ExtractionRun) -> ExtractionRun:
        challenge = run.bundle.metadata.challenge
        if not challenge.required:
            return replace(run, state=State.DESTINATION, secret="")
        supplied = self.ask_passphrase(run.bundle.metadata)
        if supplied is None or not challenge.matches(supplied):
            raise InvalidKey("Incorrect passphrase")
        # the supplied text, not the stored challenge, keys the cipher
        return replace(run, state=State.DESTINATION, secret=supplied)

    def _destination(self, run: ExtractionRun) -> ExtractionRun:
        target = self.choose_destination(run.bundle.metadata)
        if not target or not str(target).strip():
            raise NoDestination("No destination directory selected")
        target = os.path.abspath(os.path.expanduser(str(target).strip()))
        os.makedirs(target, exist_ok=True)
        return replace(run, state=State.DECRYPTING, destination=target)

    def _decrypt(self, run: ExtractionRun) -> ExtractionRun:
        meta = run.bundle.metadata
        key = derive_key(run.secret, meta.artifact_name, meta.payload_size, meta.timestamp)
        plaintext = cipher.decrypt(run.bundle.blob, key)
        container = open_container(plaintext)
        return replace(run, state=State.UNPACKING, container=container)

    def _unpack(self, run: ExtractionRun) -> ExtractionRun:
        written: List[str] = []
        try:
            unpack_container(run.container, run.destination, written=written, on_entry=self.on_entry)
        except (SfxError, OSError) as exc:
            log.debug("unpacking stopped after %d entries: %s", len(written), exc)
            return replace(
                run,
                state=State.ERROR,
                error=exc,
                failed_in=State.UNPACKING,
                written=tuple(written),
            )
        return replace(run, state=State.DONE, written=tuple(written))


def extract_bundle(
    source: Union[bytes, Bundle],
    *,
    passphrase: Optional[str] = None,
    destination: Optional[str] = None,
    ask_passphrase: Optional[PassphrasePrompt] = None,
    choose_destination: Optional[DestinationPrompt] = None,
    on_entry: Optional[Callable[[ContainerEntry], None]] = None,
) -> ExtractionRun:
    """Run an extraction and raise the recorded error on failure.

    Fixed ``passphrase``/``destination`` values take precedence over the
    prompt callables.
    """
    if passphrase is not None:
        ask_passphrase = lambda _meta: passphrase  # noqa: E731
    if destination is not None:
        choose_destination = lambda _meta: destination  # noqa: E731
    run = Extractor(
        source,
        ask_passphrase=ask_passphrase or _no_passphrase,
        choose_destination=choose_destination or _no_destination,
        on_entry=on_entry,
    ).run()
    if run.error is not None:
        raise run.error
    return run
