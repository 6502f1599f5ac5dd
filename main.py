"""IdBridge Main Application."""

import asyncio
import signal
import sys

from pydantic import ValidationError

from idbridge import IDBRIDGE_HEADER, log
from idbridge.config.settings import get_config
from idbridge.core.bridge import IdBridge
from idbridge.core.sched import MaintenanceScheduler
from idbridge.exceptions import IdBridgeError


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Install SIGINT/SIGTERM handlers that request shutdown."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig):
        name = signal.Signals(sig).name if sig else "UNKNOWN"
        log.info(f"IdBridge: Received {name} signal, initiating graceful shutdown...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda s=sig: _on_signal(s))
        except NotImplementedError:
            # Fallback for environments that don't support add_signal_handler
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(_on_signal, s))


async def run() -> int:
    """Main application entry point.

    Loads the anime table, then keeps the equivalence cache optimized on the
    configured interval until a shutdown signal arrives.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    bridge: IdBridge | None = None
    scheduler: MaintenanceScheduler | None = None
    stop_event = asyncio.Event()

    ret = 0
    try:
        log.info("\n" + IDBRIDGE_HEADER)

        config = get_config()
        log.info(f"IdBridge: {config}")

        bridge = IdBridge(config)
        await bridge.initialize()

        scheduler = MaintenanceScheduler(
            bridge.manager, config.cache.maintenance_interval, stop_event=stop_event
        )
        _setup_signal_handlers(stop_event)

        if config.cache.maintenance_interval <= 0:
            await scheduler.run_once()
            return 0

        await scheduler.start()
        log.success("IdBridge: Maintenance service started (ctrl+c to stop)")
        await stop_event.wait()
    except KeyboardInterrupt:
        log.info("IdBridge: Keyboard interrupt received, shutting down...")
    except ValidationError as e:
        log.error(f"IdBridge: Configuration validation error: {e}")
        return 1
    except IdBridgeError as e:
        log.error(f"IdBridge: {e}")
        return 1
    except OSError as e:
        log.error(f"IdBridge: File system error: {e}")
        return 1
    except asyncio.CancelledError:
        log.info("IdBridge: Application cancelled")
        return 0
    finally:
        log.info("IdBridge: Shutting down application...")
        try:
            if scheduler:
                await scheduler.stop()
            if bridge:
                bridge.metrics.log_summary()
                await bridge.close()
            log.success("IdBridge: Application shutdown complete")
        except asyncio.CancelledError:
            log.info("IdBridge: Shutdown cancelled")
            ret = 1
        except Exception as e:
            log.error(f"IdBridge: Error during shutdown: {e}", exc_info=True)
            ret = 1
    return ret


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv (list[str] | None): Command-line arguments (unused).

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        log.info("IdBridge: Application interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
