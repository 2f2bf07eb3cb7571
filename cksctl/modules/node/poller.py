"""Fixed-interval readiness polling against external state.

A timeout is never an error here: callers get ``PollResult.ready == False``
and decide to warn and carry on.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .invoker import CommandRunner
from .models import FailurePolicy

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    ready: bool
    attempts: int
    elapsed: float

    def __bool__(self) -> bool:
        return self.ready


def poll_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 5,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollResult:
    """Check ``predicate`` every ``interval`` seconds until it holds or time runs out.

    The predicate is checked before each sleep, so a predicate that turns
    true after N intervals is seen on check N+1. Not-ready is only reported
    once ``timeout`` has elapsed, or once ``max_attempts`` checks have failed
    and the pause after the last of them is over.

    Args:
        predicate: External status check; exceptions count as "not yet"
        timeout: Seconds to keep trying
        interval: Fixed pause between checks
        max_attempts: Optional cap on the number of checks
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        PollResult describing how the wait ended
    """
    start = clock()
    attempts = 0
    while True:
        attempts += 1
        try:
            if predicate():
                return PollResult(True, attempts, clock() - start)
        except Exception as e:
            logger.debug(f"Readiness check raised, treating as not ready: {e}")

        elapsed = clock() - start
        if elapsed >= timeout:
            break
        sleep(min(interval, timeout - elapsed))
        if max_attempts is not None and attempts >= max_attempts:
            break

    return PollResult(False, attempts, clock() - start)


def wait_for_condition(runner: CommandRunner, kubectl: list, resource: list, timeout: int,
                       condition: str = 'Ready') -> bool:
    """Blocking ``kubectl wait`` with a soft failure policy."""
    result = runner.run(
        kubectl + ['wait', f'--for=condition={condition}', *resource, f'--timeout={timeout}s'],
        policy=FailurePolicy.SOFT,
        timeout=timeout + 30,
        quiet=True,
    )
    return result.ok


def wait_for_pods(
    runner: CommandRunner,
    kubectl: list,
    selector: str,
    namespace: str,
    timeout: int,
    interval: float = 5,
    existence_attempts: int = 60,
    pods_present: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Wait for pods to exist, then for them to report Ready.

    The first phase avoids ``kubectl wait`` erroring out because the pods
    have not been created yet by the preceding apply.

    Returns:
        True if the pods became Ready before the timeout
    """
    if runner.dry_run:
        logger.info(f"[dry-run] Would wait for pods matching {selector} in {namespace}")
        return True

    if pods_present is None:
        def pods_present():
            result = runner.run(kubectl + ['get', 'pods', '-n', namespace, '-l', selector, '-o', 'name'],
                                policy=FailurePolicy.SOFT, quiet=True, read_only=True)
            return result.ok and bool(result.output.strip())

    existence = poll_until(pods_present, timeout=interval * existence_attempts, interval=interval,
                           max_attempts=existence_attempts, sleep=sleep, clock=clock)
    if existence.ready:
        logger.info(f"Pods matching {selector} detected, waiting for them to be ready...")
    else:
        logger.warning(f"No pods matching {selector} in {namespace} after {existence.attempts} checks")

    return wait_for_condition(runner, kubectl, ['pods', '-l', selector, '-n', namespace], timeout)
