"""
Structured fan-out/fan-in for provider calls.

gather_outcomes() runs every call concurrently and reports each one as an
explicit SUCCESS / ABSENT / ERROR outcome, so no failure is ever silently
dropped. Cancellation of the caller cancels every in-flight call.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, Optional

from .errors import ProviderError
from .models import ProviderName


logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderOutcome:
    provider: ProviderName
    status: OutcomeStatus
    value: Optional[Any] = None
    error: Optional[Exception] = None

    @property
    def responded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def error_message(self) -> str:
        if isinstance(self.error, ProviderError):
            reason = self.error.message
        else:
            reason = str(self.error) or type(self.error).__name__
        return f"{self.provider.display_name} fetch failed: {reason}"


async def gather_outcomes(calls: Dict[ProviderName, Awaitable]) -> Dict[ProviderName, ProviderOutcome]:
    """
    Await all calls and classify each result.

    Args:
        calls: Provider -> pending coroutine

    Returns:
        Provider -> outcome, in the order of calls
    """
    providers = list(calls)
    results = await asyncio.gather(*calls.values(), return_exceptions=True)

    outcomes: Dict[ProviderName, ProviderOutcome] = {}
    for provider, result in zip(providers, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, ProviderError):
            logger.warning(f"{provider.value}: {result.message}")
            outcomes[provider] = ProviderOutcome(provider, OutcomeStatus.ERROR, error=result)
        elif isinstance(result, Exception):
            logger.error(f"{provider.value}: unexpected failure", exc_info=result)
            outcomes[provider] = ProviderOutcome(provider, OutcomeStatus.ERROR, error=result)
        elif isinstance(result, BaseException):
            raise result
        elif result is None:
            outcomes[provider] = ProviderOutcome(provider, OutcomeStatus.ABSENT)
        else:
            outcomes[provider] = ProviderOutcome(provider, OutcomeStatus.SUCCESS, value=result)
    return outcomes
