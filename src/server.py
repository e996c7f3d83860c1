"""Protean Engine runner for the Orders domain.

Starts the background workers that keep orders moving without a request:
- Engine: processes events asynchronously (outbox, projectors, event handlers)
- Penalty sweep: marks late tranches overdue and accrues penalties on a timer

Usage:
    python src/server.py                  # Run the engine and the penalty sweep
    python src/server.py --no-engine      # Run only the penalty sweep
    python src/server.py --interval 600   # Sweep every ten minutes
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the orders domain."""
    from orders.domain import orders

    orders.init()
    return orders


async def run(with_engine=True, interval=None):
    from orders.penalty.engine import run_periodically

    domain = _get_domain()
    tasks = [run_periodically(domain, interval)]
    if with_engine:
        tasks.append(Engine(domain).run())

    await asyncio.gather(*tasks)


def main():
    parser = argparse.ArgumentParser(description="Storefront Orders background runner")
    parser.add_argument(
        "--no-engine",
        action="store_true",
        help="Skip the Protean Engine and run only the penalty sweep",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between penalty sweeps (default: PENALTY_SWEEP_INTERVAL_SECONDS)",
    )
    args = parser.parse_args()

    asyncio.run(run(with_engine=not args.no_engine, interval=args.interval))


if __name__ == "__main__":
    main()
