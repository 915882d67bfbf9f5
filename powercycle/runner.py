"""
Run every configured account, with optionally bounded concurrency.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .account import AccountRevolver
from .aws import ClientFactory
from .clock import utc_now
from .config import AccountConfig, RunConfig, resolve_accounts

logger = logging.getLogger(__name__)


async def run_accounts(
    accounts: List[AccountConfig],
    now: datetime,
    concurrency: Optional[int] = None,
    clients_for: Optional[Callable[[AccountConfig], ClientFactory]] = None,
) -> Dict[str, Any]:
    """
    Revolve all accounts concurrently.

    Args:
        accounts: Resolved account configurations
        now: Pinned run time shared by every account
        concurrency: Maximum accounts in flight, unbounded when None
        clients_for: Optional factory of AWS client factories, mainly for tests

    Returns:
        Summary with one entry per account and the number of failed accounts
    """
    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def run_one(account: AccountConfig) -> Dict[str, Any]:
        clients = clients_for(account) if clients_for else None
        revolver = AccountRevolver(account, clients)
        if semaphore is None:
            return await revolver.revolve(now)
        async with semaphore:
            return await revolver.revolve(now)

    results = await asyncio.gather(*(run_one(account) for account in accounts))
    failed = sum(1 for result in results if result["error"])
    if failed:
        logger.error(f"{failed} of {len(results)} accounts failed")
    else:
        logger.info(f"Processed {len(results)} accounts")

    return {
        "time": now.isoformat(),
        "accounts": list(results),
        "failed": failed,
    }


def run(config: RunConfig, now: Optional[datetime] = None, concurrency: Optional[int] = None) -> Dict[str, Any]:
    """Resolve accounts from the configuration and run them all."""
    accounts = resolve_accounts(config)
    if not accounts:
        logger.warning("No accounts to process")
    return asyncio.run(run_accounts(accounts, now or utc_now(), concurrency))
