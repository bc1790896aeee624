import sys
import logging

from stream_timer.cli import main

log = logging.getLogger("stream_timer")


# Entry point for `python -m stream_timer`
def run() -> None:
    try:
        main()
    except SystemExit:
        raise
    except Exception:
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)


if __name__ == "__main__":
    run()
