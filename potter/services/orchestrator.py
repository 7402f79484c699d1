"""Per-operation transaction state machine.

BUILDING -> SUBMITTED -> CONFIRMED | FAILED

An operation is a single best-effort attempt. Nothing is re-sent after the
ledger has had a chance to commit it; retry policy belongs to the caller.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from potter.services.errors import ErrorKind, OperationError, translate
from potter.services.plan import TransactionPlan
from potter.services.signer import TransactionSubmitter

logger = structlog.get_logger()

PlanBuilder = Callable[[TransactionPlan], Awaitable[None]]


class OperationState(str, Enum):
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class OperationResult:
    """Outcome of one operation; the only thing that crosses to callers"""
    operation: str
    state: OperationState
    signature: Optional[str] = None
    error: Optional[OperationError] = None
    context: Dict[str, Any] = field(default_factory=dict)
    history: List[OperationState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == OperationState.CONFIRMED

    def to_response(self) -> Dict[str, Any]:
        if self.ok:
            return {"signature": self.signature}
        return self.error.to_dict()


class TransactionOrchestrator:
    """Builds a plan, submits it atomically and classifies the outcome"""

    def __init__(self, submitter: TransactionSubmitter):
        self.submitter = submitter

    async def execute(self, operation: str, build: PlanBuilder) -> OperationResult:
        """Run ``build`` against a fresh plan, then submit it once.

        ``build`` may read the ledger and raise OperationError for client-side
        validation; such failures end the operation before anything is sent.
        A plan with no instructions succeeds without submission.
        """
        result = OperationResult(operation=operation, state=OperationState.BUILDING)
        result.history.append(OperationState.BUILDING)

        plan = await self._build(operation, build, result)
        if plan is None:
            return result

        outcome = await self._submit(plan, result)
        if (
            outcome is not None
            and outcome.kind == ErrorKind.ACCOUNT_ALREADY_EXISTS
            and plan.ensured_accounts
        ):
            # Someone else created an ensured account between our read and our
            # submission. The failed transaction committed nothing, so build a
            # new one; the fresh read omits the creation this time.
            logger.info(
                "Ensured account already exists, rebuilding",
                operation=operation,
                accounts=[str(a) for a in plan.ensured_accounts],
            )
            result.state = OperationState.BUILDING
            result.history.append(OperationState.BUILDING)
            plan = await self._build(operation, build, result)
            if plan is None:
                return result
            outcome = await self._submit(plan, result)

        if outcome is not None:
            self._fail(result, outcome)
        return result

    async def _build(
        self,
        operation: str,
        build: PlanBuilder,
        result: OperationResult,
    ) -> Optional[TransactionPlan]:
        plan = TransactionPlan(operation=operation, fee_payer=self.submitter.public_key)
        try:
            await build(plan)
        except OperationError as e:
            self._fail(result, e)
            return None
        except Exception as e:
            logger.error("Error while building transaction", operation=operation, error=str(e), exc_info=True)
            self._fail(result, translate(e))
            return None

        result.context.update(plan.context)
        if plan.is_empty:
            logger.info("Nothing to submit", operation=operation)
            self._confirm(result, None)
            return None
        return plan

    async def _submit(self, plan: TransactionPlan, result: OperationResult) -> Optional[OperationError]:
        """Submit the plan; return the classified failure, None on success"""
        result.state = OperationState.SUBMITTED
        result.history.append(OperationState.SUBMITTED)
        logger.info(
            "Submitting transaction",
            operation=plan.operation,
            instructions=len(plan.instructions),
            ensured_accounts=len(plan.ensured_accounts),
        )
        try:
            signature = await self.submitter.sign_and_submit(plan.instructions, plan.signers)
        except Exception as e:
            return translate(e)

        self._confirm(result, signature)
        return None

    def _confirm(self, result: OperationResult, signature: Optional[str]) -> None:
        result.state = OperationState.CONFIRMED
        result.signature = signature
        result.history.append(OperationState.CONFIRMED)
        logger.info("Operation confirmed", operation=result.operation, signature=signature)

    def _fail(self, result: OperationResult, error: OperationError) -> None:
        result.state = OperationState.FAILED
        result.error = error
        result.history.append(OperationState.FAILED)
        logger.warning(
            "Operation failed",
            operation=result.operation,
            error_kind=error.kind.value,
            code=error.code,
            detail=error.detail,
        )
