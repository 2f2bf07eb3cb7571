"""Runs an ordered list of steps, one at a time."""
import logging
import time
from typing import List, Sequence

from cksctl.errors import StepFailedError
from .models import FailurePolicy, RunReport, StepDefinition, StepOutcome

logger = logging.getLogger(__name__)


class StepExecutor:
    """Executes steps in their fixed order and records what happened.

    An idempotent step whose precondition is already satisfied is skipped.
    Non-idempotent steps always run. A failing FATAL step stops the run with
    ``StepFailedError``; whatever it changed stays as it is. A failing SOFT step is logged as a warning and the next
    step runs.
    """

    def __init__(self, title: str, steps: Sequence[StepDefinition]):
        names = [s.name for s in steps]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate step names: {', '.join(sorted(duplicates))}")
        self.title = title
        self.steps: List[StepDefinition] = list(steps)

    def run(self) -> RunReport:
        report = RunReport(title=self.title)
        total = len(self.steps)

        for index, step in enumerate(self.steps, 1):
            label = f"STEP {index}/{total}: {step.description or step.name}"
            start = time.time()

            if step.idempotent and step.precondition is not None and self._satisfied(step):
                logger.info(f"{label} - already in place, skipping")
                report.record(step.name, StepOutcome.SKIPPED)
                continue

            logger.info(f"{label}...")
            try:
                result = step.action()
            except Exception as e:
                duration = time.time() - start
                if step.policy == FailurePolicy.FATAL:
                    logger.error(f"{label} failed: {e}")
                    report.record(step.name, StepOutcome.FAILED, duration, str(e))
                    report.finish()
                    raise StepFailedError(step.name, e) from e
                logger.warning(f"{label} did not complete cleanly (continuing): {e}")
                report.record(step.name, StepOutcome.WARNED, duration, str(e))
                continue

            duration = time.time() - start
            message = result.message if result else ''
            warnings = result.warnings if result else []
            for warning in warnings:
                logger.warning(warning)
            outcome = StepOutcome.WARNED if warnings else StepOutcome.OK
            report.record(step.name, outcome, duration, message or '; '.join(warnings))
            logger.debug(f"{step.name} finished in {duration:.1f}s")

        report.finish()
        return report

    @staticmethod
    def _satisfied(step: StepDefinition) -> bool:
        try:
            return bool(step.precondition())
        except Exception as e:
            logger.debug(f"Precondition for {step.name} raised, running the step: {e}")
            return False
