"""Approve, act and confirm state machine for vault deposits and withdrawals."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from web3 import Web3

from .abi import encode_call, load_erc20_abi, load_vault_abi
from .adapters.ledger_adapters.base import BaseLedgerAdapter
from .adapters.signer_adapters.base import (
    BaseSigner,
    TransactionHandle,
    TransactionReceipt,
    TransactionRequest,
)
from .domain import (
    MutationKind,
    MutationRequest,
    MutationState,
    MutationStatus,
    PortfolioSnapshot,
    VaultDescriptor,
)
from .errors import (
    ConfirmationTimeoutError,
    ContractRevertError,
    InvalidConfigurationError,
    MutationBusyError,
    TransportError,
    VaultHubError,
)
from .logger import get_logger
from .notifications import (
    BaseNotificationSink,
    LoggingNotificationSink,
    NotificationEvent,
    NotificationKind,
)
from .pipeline.aggregator import StateAggregator
from .pipeline.positions import PositionRefresher

APPROVAL_STAGE = "approval"

SlotKey = tuple[str, str]


@dataclass
class _Slot:
    request: MutationRequest
    state: MutationState
    pending: TransactionHandle | None = None
    task: asyncio.Task[MutationState] | None = None


class TransactionOrchestrator:
    """Runs deposits and withdrawals, one at a time per (wallet, vault) pair.

    Every mutation runs in its own task. Callers await it through
    ``asyncio.shield``: cancelling the caller leaves the submitted work
    running and the slot is still resolved. A confirmation timeout leaves the
    pair INDETERMINATE until a later aggregator refresh (or an explicit
    ``reconcile()``) sees the pending transaction's outcome.
    """

    def __init__(
        self,
        ledger: BaseLedgerAdapter,
        signer: BaseSigner,
        aggregator: StateAggregator | None = None,
        positions: PositionRefresher | None = None,
        sink: BaseNotificationSink | None = None,
        confirmation_timeout: float = 180.0,
        logger: logging.Logger | None = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.aggregator = aggregator
        self.positions = positions
        self.sink = sink or LoggingNotificationSink()
        self.confirmation_timeout = confirmation_timeout
        self.log = logger or get_logger(__name__)
        self._slots: dict[SlotKey, _Slot] = {}
        self._tasks: set[asyncio.Task[MutationState]] = set()
        if aggregator is not None:
            aggregator.add_refresh_hook(self._reconcile_on_refresh)

    # ----- public surface -----

    def state_of(self, wallet: str, vault_address: str) -> MutationState:
        slot = self._slots.get((wallet.lower(), vault_address.lower()))
        return slot.state if slot else MutationState()

    async def deposit(self, vault: VaultDescriptor, wallet: str, amount: int) -> MutationState:
        return await self.submit(
            MutationRequest(MutationKind.DEPOSIT, vault, wallet, amount, vault.decimals)
        )

    async def withdraw(self, vault: VaultDescriptor, wallet: str, amount: int) -> MutationState:
        return await self.submit(
            MutationRequest(MutationKind.WITHDRAW, vault, wallet, amount, vault.decimals)
        )

    async def submit(self, request: MutationRequest) -> MutationState:
        """Run ``request`` to a terminal or indeterminate state.

        A pair left INDETERMINATE is reconciled first, so a transaction that
        has since been mined frees the slot for this request.

        Raises:
            MutationBusyError: If the pair already has a mutation in flight.
            InvalidConfigurationError: If the signer does not control ``request.wallet``.
        """
        slot = self._slots.get(request.key)
        if slot is not None and slot.state.status is MutationStatus.INDETERMINATE:
            await self._reconcile_slot(slot)

        task = self.start(request)
        return await asyncio.shield(task)

    def start(self, request: MutationRequest) -> asyncio.Task[MutationState]:
        """Claim the pair's slot and schedule the mutation without awaiting it."""
        if request.wallet.lower() != self.signer.address.lower():
            raise InvalidConfigurationError(
                f"Signer {self.signer.address} cannot act for wallet {request.wallet}"
            )

        key = request.key
        current = self._slots.get(key)
        if current is not None and current.state.is_active:
            raise MutationBusyError(
                f"A {current.request.kind.value} for {request.wallet} on "
                f"{request.vault.name} is already {current.state.status.value}"
            )

        first = (
            MutationStatus.CHECKING_ALLOWANCE
            if request.kind is MutationKind.DEPOSIT
            else MutationStatus.SUBMITTING
        )
        self._slots[key] = _Slot(request=request, state=MutationState(status=first))

        task = asyncio.create_task(self._run(request), name=f"{request.kind.value}:{key}")
        self._slots[key].task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self) -> None:
        """Wait for every scheduled mutation task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def reconcile(self) -> dict[SlotKey, MutationState]:
        """Poll the pending transaction of every INDETERMINATE pair once.

        Returns the states of the pairs that were resolved by this call.
        A late-confirmed approval still ends FAILED, since the action itself
        was never submitted.
        """
        return await self._reconcile_all()

    # ----- reconciliation -----

    async def _reconcile_on_refresh(self, snapshot: PortfolioSnapshot) -> None:
        await self._reconcile_all(snapshot)

    async def _reconcile_all(
        self, snapshot: PortfolioSnapshot | None = None
    ) -> dict[SlotKey, MutationState]:
        resolved: dict[SlotKey, MutationState] = {}
        for key, slot in list(self._slots.items()):
            if slot.state.status is not MutationStatus.INDETERMINATE:
                continue
            state = await self._reconcile_slot(slot, snapshot)
            if state is not None:
                resolved[key] = state
        return resolved

    async def _reconcile_slot(
        self, slot: _Slot, snapshot: PortfolioSnapshot | None = None
    ) -> MutationState | None:
        """Resolve one INDETERMINATE slot if its pending transaction has an outcome.

        ``snapshot`` is the pass that triggered reconciliation, if any; it is
        reused for the position refresh instead of starting another pass.
        """
        handle = slot.pending
        if handle is None:
            return None
        # the mutation task is still waiting on this receipt and resolves it itself
        if slot.task is not None and not slot.task.done():
            return None

        try:
            receipt = await handle.poll()
        except TransportError as e:
            self.log.warning("Reconcile poll for %s failed: %s", handle.tx_hash, e)
            return None
        if receipt is None:
            self.log.debug("Transaction %s still pending", handle.tx_hash)
            return None
        # resolved concurrently by another reconcile
        if slot.pending is not handle:
            return None

        stage = slot.state.pending_stage
        slot.pending = None
        request = slot.request
        match (receipt.succeeded, stage):
            case (False, _):
                return self._fail(request, f"{stage} transaction {receipt.tx_hash} reverted")
            case (True, "approval"):
                return self._fail(
                    request,
                    f"approval {receipt.tx_hash} confirmed late; "
                    f"{request.kind.value} was not submitted",
                )
            case _:
                state = self._succeed(request, receipt)
                if snapshot is None:
                    await self._refresh_after_success(request)
                else:
                    await self._refresh_positions(request, snapshot)
                return state

    # ----- state machine -----

    def _transition(
        self, request: MutationRequest, status: MutationStatus, **changes: object
    ) -> MutationState:
        slot = self._slots[request.key]
        slot.state = replace(slot.state, status=status, **changes)
        self.log.info(
            "%s -> %s",
            request.kind.value,
            status.value,
            extra={
                "vault": request.vault.name,
                "wallet": request.wallet,
                "tx_hash": slot.state.tx_hash,
            },
        )
        return slot.state

    def _fail(self, request: MutationRequest, reason: str) -> MutationState:
        self._slots[request.key].pending = None
        state = self._transition(
            request, MutationStatus.FAILED, reason=reason, pending_stage=None
        )
        self._emit(request, NotificationKind.ERROR, reason, tx_hash=state.tx_hash)
        return state

    def _succeed(self, request: MutationRequest, receipt: TransactionReceipt) -> MutationState:
        state = self._transition(
            request, MutationStatus.SUCCEEDED, reason=None, pending_stage=None
        )
        self._emit(
            request,
            NotificationKind.ACTION_CONFIRMED,
            f"{request.kind.value.capitalize()} confirmed on {request.vault.name}",
            tx_hash=receipt.tx_hash,
        )
        return state

    def _emit(
        self,
        request: MutationRequest,
        kind: NotificationKind,
        message: str,
        tx_hash: str | None = None,
    ) -> None:
        event = NotificationEvent(
            kind=kind,
            mutation=request.kind,
            wallet=request.wallet,
            vault_address=request.vault.address,
            message=message,
            tx_hash=tx_hash,
        )
        try:
            self.sink.emit(event)
        except Exception as e:
            self.log.warning("Notification sink failed for %s: %s", kind.value, e)

    async def _await_receipt(
        self, request: MutationRequest, handle: TransactionHandle, stage: str
    ) -> TransactionReceipt:
        slot = self._slots[request.key]
        slot.pending = handle
        slot.state = replace(slot.state, pending_stage=stage)

        receipt = await handle.wait(self.confirmation_timeout)

        slot.pending = None
        slot.state = replace(slot.state, pending_stage=None)
        if not receipt.succeeded:
            raise ContractRevertError(f"{stage} transaction {receipt.tx_hash} reverted")
        return receipt

    async def _resolve_asset(self, vault: VaultDescriptor) -> str:
        snapshot = self.aggregator.current if self.aggregator else None
        state = snapshot.vault(vault.address) if snapshot else None
        if state is not None:
            return state.asset_address
        return await self.ledger.call(vault.address, load_vault_abi(), "asset")

    async def _approve_if_needed(self, request: MutationRequest) -> None:
        erc20_abi = load_erc20_abi()
        asset = await self._resolve_asset(request.vault)
        allowance = int(
            await self.ledger.call(
                asset, erc20_abi, "allowance", request.wallet, request.vault.address
            )
        )
        if allowance >= request.amount:
            self.log.debug(
                "Allowance %d covers %d on %s; skipping approval",
                allowance,
                request.amount,
                request.vault.name,
            )
            return

        self._transition(request, MutationStatus.APPROVING)
        self._emit(
            request,
            NotificationKind.APPROVAL_REQUESTED,
            f"Approving {request.vault.name} to spend {request.amount} base units",
        )
        spender = Web3.to_checksum_address(request.vault.address)
        handle = await self.signer.submit(
            TransactionRequest(
                to=asset,
                data=encode_call(asset, erc20_abi, "approve", [spender, request.amount]),
                label=f"approve {request.vault.asset_symbol} for {request.vault.name}",
            )
        )
        self._slots[request.key].state = replace(
            self._slots[request.key].state, approval_tx_hash=handle.tx_hash
        )
        await self._await_receipt(request, handle, APPROVAL_STAGE)
        self._emit(
            request,
            NotificationKind.APPROVAL_CONFIRMED,
            f"Approval confirmed for {request.vault.name}",
            tx_hash=handle.tx_hash,
        )

    def _action_request(self, request: MutationRequest) -> TransactionRequest:
        vault = request.vault
        owner = Web3.to_checksum_address(request.wallet)
        match request.kind:
            case MutationKind.DEPOSIT:
                args = [request.amount, owner]
                label = f"deposit into {vault.name}"
            case MutationKind.WITHDRAW:
                args = [request.amount, owner, owner]
                label = f"withdraw from {vault.name}"
        return TransactionRequest(
            to=vault.address,
            data=encode_call(vault.address, load_vault_abi(), request.kind.value, args),
            label=label,
        )

    async def _refresh_positions(
        self, request: MutationRequest, snapshot: PortfolioSnapshot
    ) -> None:
        if self.positions is None:
            return
        try:
            await self.positions.refresh_positions(request.wallet, snapshot)
        except VaultHubError as e:
            self.log.warning("Post-%s position refresh failed: %s", request.kind.value, e)

    async def _refresh_after_success(self, request: MutationRequest) -> None:
        if self.aggregator is None:
            return
        try:
            snapshot = await self.aggregator.refresh()
        except VaultHubError as e:
            self.log.warning("Post-%s refresh failed: %s", request.kind.value, e)
            return
        await self._refresh_positions(request, snapshot)

    async def _run(self, request: MutationRequest) -> MutationState:
        try:
            if request.kind is MutationKind.DEPOSIT:
                await self._approve_if_needed(request)

            self._transition(request, MutationStatus.SUBMITTING)
            handle = await self.signer.submit(self._action_request(request))
            self._emit(
                request,
                NotificationKind.ACTION_SUBMITTED,
                f"{request.kind.value.capitalize()} submitted to {request.vault.name}",
                tx_hash=handle.tx_hash,
            )
            self._transition(
                request, MutationStatus.AWAITING_CONFIRMATION, tx_hash=handle.tx_hash
            )
            receipt = await self._await_receipt(request, handle, request.kind.value)
        except ConfirmationTimeoutError as e:
            state = self._transition(request, MutationStatus.INDETERMINATE, reason=str(e))
            self._emit(request, NotificationKind.ERROR, str(e), tx_hash=e.tx_hash)
            return state
        except VaultHubError as e:
            return self._fail(request, str(e))
        except asyncio.CancelledError:
            if self._slots[request.key].pending is not None:
                self._transition(
                    request,
                    MutationStatus.INDETERMINATE,
                    reason="cancelled while awaiting confirmation",
                )
            else:
                self._fail(request, "cancelled")
            raise
        except Exception as e:
            self.log.exception("Unexpected error during %s", request.kind.value)
            return self._fail(request, f"unexpected error: {e}")

        state = self._succeed(request, receipt)
        await self._refresh_after_success(request)
        return state
