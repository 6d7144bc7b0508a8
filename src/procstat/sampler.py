"""Sampling loop orchestrating source, liveness, encoder and scheduler."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TextIO

import structlog

from procstat.config import Config, ConfigurationError
from procstat.encoder import Encoder, Tick
from procstat.liveness import LivenessTracker
from procstat.logging import configure as configure_logging
from procstat.scheduler import Scheduler
from procstat.source import ReadFailure, StatSource, process_name

log = structlog.get_logger()

STOP_SIGNAL = "signal"
STOP_ALL_EXITED = "all_exited"

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SetupError(RuntimeError):
    """Raised when the sampler can't be started (output or signal setup)."""


@dataclass
class SamplerState:
    """Runtime state of the sampler."""

    running: bool = False
    tick_count: int = 0
    retired: list[int] = field(default_factory=list)
    stop_reason: str | None = None

    def update_tick(self) -> None:
        """Update state after a tick is written."""
        self.tick_count += 1


class Sampler:
    """Writes one JSON line per tick for a fixed set of PIDs.

    Lifecycle: start() opens the output and installs signal handlers,
    run() loops until a shutdown signal arrives or every PID has exited,
    stop() closes everything. Only one coroutine ever touches the state.
    """

    def __init__(
        self,
        pids: Iterable[int],
        config: Config,
        out: TextIO | None = None,
        source: StatSource | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        # One slot per PID, since procs keys must be unique
        watch = list(dict.fromkeys(pids))
        if not watch:
            raise ConfigurationError("no pid given")

        self.config = config
        self.state = SamplerState()
        self.tracker = LivenessTracker(watch)
        self.source = source or StatSource(
            watch,
            stats=config.sampling.stats,
            proc_root=config.sampling.proc_root,
        )
        self.encoder = Encoder(config.output.escaping)

        self._clock = clock
        self._out = out
        self._owns_out = False
        self._shutdown_event = asyncio.Event()
        self._signal_received: signal.Signals | None = None
        self._signals_installed: list[signal.Signals] = []
        self.scheduler: Scheduler | None = None

    @property
    def pids(self) -> list[int]:
        """All watched PIDs, retired or not."""
        return [slot.pid for slot in self.tracker]

    def _open_output(self) -> None:
        """Open the configured output file, or fall back to stdout."""
        if self._out is not None:
            return
        path = self.config.output.path
        if not path:
            self._out = sys.stdout
            return
        try:
            self._out = open(path, "w", encoding="utf-8")
        except OSError as e:
            raise SetupError(f"cannot open output file {path}: {e.strerror or e}") from e
        self._owns_out = True
        log.debug("output_opened", path=path)

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to the shutdown event."""
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                raise SetupError(f"failed to set {sig.name} handler: {e}") from e
            self._signals_installed.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signals_installed:
            loop.remove_signal_handler(sig)
        self._signals_installed.clear()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals.

        Only records the signal; it is logged and acted on at the top of the
        next loop iteration.
        """
        self._signal_received = sig
        self._shutdown_event.set()

    def request_shutdown(self) -> None:
        """Ask the loop to stop before its next tick."""
        self._shutdown_event.set()

    async def start(self) -> None:
        """Open output, install signal handlers and log the watch set."""
        log.info(
            "sampler_starting",
            pids=self.pids,
            interval=self.config.sampling.interval,
            stats=list(self.source.stats),
            escaping=self.encoder.escaping,
        )
        self._install_signal_handlers()
        self._open_output()

        for pid in self.pids:
            name = process_name(pid)
            if name is None:
                log.warning("watching_process", pid=pid, command=None, found=False)
            else:
                log.info("watching_process", pid=pid, command=name)

        self.state.running = True

    def stop(self) -> None:
        """Flush and close output, remove signal handlers, log the summary."""
        self.state.running = False

        if self._signals_installed:
            self._remove_signal_handlers()

        if self._out is not None:
            try:
                self._out.flush()
            finally:
                if self._owns_out:
                    self._out.close()
                    self._out = None
                    self._owns_out = False

        log.info(
            "sampler_stopped",
            reason=self.state.stop_reason,
            ticks=self.state.tick_count,
            retired=self.state.retired,
        )

    def sample_once(self) -> Tick:
        """Build, encode and write one tick.

        PIDs whose statistics can't be read are retired and left out of this
        and every later tick.
        """
        tick = Tick(time=self._clock())

        for pid in self.tracker.live_ids():
            try:
                tick.procs[pid] = self.source.fetch(pid)
            except ReadFailure as e:
                self.tracker.mark_dead(pid)
                self.state.retired.append(pid)
                log.info("process_retired", pid=pid, path=str(e.path), reason=e.reason)

        self._write_line(self.encoder.encode(tick))
        self.state.update_tick()
        return tick

    def _write_line(self, line: str) -> None:
        if self._out is None:
            raise RuntimeError("start() must be called before sampling")
        self._out.write(line + "\n")
        self._out.flush()

    def _log_heartbeat(self) -> None:
        every = self.config.sampling.heartbeat_ticks
        if every and self.state.tick_count % every == 0 and self.scheduler is not None:
            log.info(
                "sampler_heartbeat",
                ticks=self.state.tick_count,
                live=len(self.tracker.live_ids()),
                max_lag=round(self.scheduler.max_lag, 6),
                overruns=self.scheduler.overruns,
            )

    async def run(self) -> None:
        """Main loop: one tick per interval until shutdown or all PIDs exit.

        Each iteration:
        1. Stop if a shutdown signal was observed
        2. Sample every live PID and write one line
        3. Stop if no PID was readable (the empty tick is still written)
        4. Sleep until the next absolute target
        """
        self.scheduler = Scheduler(
            self.config.sampling.interval,
            self._shutdown_event,
            clock=self._clock,
        )

        while True:
            if self._shutdown_event.is_set():
                self.state.stop_reason = STOP_SIGNAL
                if self._signal_received is not None:
                    log.info("signal_received", signal=self._signal_received.name)
                break

            self.sample_once()

            if not self.tracker.any_live():
                self.state.stop_reason = STOP_ALL_EXITED
                log.info("all_processes_exited", ticks=self.state.tick_count)
                break

            self._log_heartbeat()
            await self.scheduler.next()


async def run_sampler(
    pids: Iterable[int],
    config: Config,
    out: TextIO | None = None,
) -> SamplerState:
    """Run the sampler until it stops.

    Args:
        pids: PIDs to watch, in output order
        config: Effective configuration
        out: Optional text stream; defaults to the configured output

    Returns:
        Final sampler state.

    Raises:
        ConfigurationError: If no PIDs were given.
        SetupError: If output or signal handlers can't be set up.
    """
    if not structlog.is_configured():
        # Library use: keep diagnostics off stdout, which may carry samples
        configure_logging(config.logging)

    sampler = Sampler(pids, config, out=out)

    try:
        await sampler.start()
        await sampler.run()
    except SetupError:
        raise
    except Exception as e:
        log.exception("sampler_crashed", error=str(e))
        raise
    finally:
        sampler.stop()

    return sampler.state
