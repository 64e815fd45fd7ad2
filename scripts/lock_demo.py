"""Hold a named lock from several workers and report how long each waited.

Run it in two terminals against the same Redis to watch processes serialize,
or with ``--workers 2`` to watch threads of one process do the same.
Interrupt one holder with Ctrl+C to see the lease expire after ``--expires``.
"""

from __future__ import annotations

import argparse
import threading
import time
from pathlib import Path

from globallock import GlobalLock, LockSettings, LockTimeoutError
from globallock.utils.logging import get_logger


logger = get_logger("LockDemo")


def _worker(lock: GlobalLock, index: int, args: argparse.Namespace) -> None:
    started = time.monotonic()

    def guarded() -> None:
        logger.info("worker %d holding %r for %.1fs", index, args.key, args.hold)
        time.sleep(args.hold)

    try:
        lock.acquire(args.key, guarded, expires=args.expires, wait_max=args.wait_max)
    except LockTimeoutError as exc:
        logger.warning("worker %d: %s", index, exc)
    logger.info("worker %d finished after %.2fs", index, time.monotonic() - started)


def main() -> None:
    parser = argparse.ArgumentParser(description="Exercise the global lock by hand.")
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML")
    parser.add_argument("--key", default="foo", help="Lock key")
    parser.add_argument("--hold", type=float, default=10.0, help="Seconds to hold the lock")
    parser.add_argument("--expires", type=float, default=None, help="Lease expiry in seconds")
    parser.add_argument("--wait-max", type=float, default=None, help="Give up after this many seconds")
    parser.add_argument("--workers", type=int, default=1, help="Concurrent threads in this process")
    args = parser.parse_args()

    settings = LockSettings.from_file(args.config) if args.config else LockSettings.from_env()
    lock = GlobalLock(settings)
    logger.info("Backend: %s", lock.backend.name)

    threads = [
        threading.Thread(target=_worker, args=(lock, i, args), name=f"lock-demo-{i}")
        for i in range(args.workers)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


if __name__ == "__main__":
    main()
