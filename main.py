"""
Situation Monitor entry point.
Starts the staged auto refresh of all dashboard data.
"""

import asyncio

from loguru import logger

from monitor.dashboard import Dashboard
from monitor.refresh import RefreshState
from monitor.settings import global_settings


def log_state(state: RefreshState) -> None:
    if not state.is_refreshing and state.last_refresh:
        logger.info(
            f"Dashboard refreshed at {state.last_refresh:%H:%M:%S} "
            f"({len(state.errors)} errors)"
        )
        for error in state.errors:
            logger.warning(f"  - {error}")


async def main() -> None:
    """Main function"""
    logger.info("Starting Situation Monitor...")
    dashboard = Dashboard.from_settings(global_settings)

    try:
        dashboard.orchestrator.subscribe(log_state)
        dashboard.start()

        logger.info("Situation Monitor is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)
            open_circuits = dashboard.registry.breakers.get_open_circuits()
            if open_circuits:
                logger.warning(f"Open circuits: {', '.join(open_circuits)}")

    except asyncio.CancelledError:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        await dashboard.close()
        logger.info("Situation Monitor stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
