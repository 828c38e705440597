import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3 import Web3

from fakes import ASSET, VAULT_A, VAULT_B, WALLET, FakeHandle, make_descriptor
from vault_hub.abi import encode_call, load_erc20_abi
from vault_hub.domain import MutationKind, MutationRequest, MutationStatus
from vault_hub.errors import InvalidConfigurationError, MutationBusyError
from vault_hub.orchestrator import TransactionOrchestrator
from vault_hub.pipeline.aggregator import StateAggregator
from vault_hub.registry import VaultRegistry

AMOUNT = 100 * 10**18


@pytest.fixture
def vault():
    return make_descriptor(VAULT_A, "Alpha")


@pytest.fixture
def orchestrator(ledger, signer, sink):
    ledger.set(VAULT_A, "asset", ASSET)
    ledger.set(VAULT_B, "asset", ASSET)
    ledger.set(ASSET, "allowance", 0)
    return TransactionOrchestrator(ledger, signer, sink=sink, confirmation_timeout=1.0)


@pytest.mark.asyncio
async def test_deposit_with_low_allowance_approves_exactly_once(
    orchestrator, ledger, signer, sink, vault
):
    ledger.set(ASSET, "allowance", AMOUNT - 1)

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.SUCCEEDED
    assert signer.labels() == ["approve", "deposit"]
    assert state.approval_tx_hash is not None
    assert state.tx_hash is not None
    assert sink.kinds() == [
        "approval_requested",
        "approval_confirmed",
        "action_submitted",
        "action_confirmed",
    ]


@pytest.mark.asyncio
async def test_approval_is_for_the_exact_amount(orchestrator, signer, vault):
    await orchestrator.deposit(vault, WALLET, AMOUNT)

    approval = signer.submitted[0]
    assert approval.to == ASSET
    assert approval.data == encode_call(
        ASSET, load_erc20_abi(), "approve", [Web3.to_checksum_address(VAULT_A), AMOUNT]
    )


@pytest.mark.asyncio
async def test_deposit_with_sufficient_allowance_skips_approval(
    orchestrator, ledger, signer, sink, vault
):
    ledger.set(ASSET, "allowance", AMOUNT)

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.SUCCEEDED
    assert signer.labels() == ["deposit"]
    assert state.approval_tx_hash is None
    assert "approval_requested" not in sink.kinds()
    allowance_calls = [args for _, fn, args in ledger.calls if fn == "allowance"]
    assert allowance_calls == [(WALLET, vault.address)]


@pytest.mark.asyncio
async def test_withdraw_never_checks_allowance(orchestrator, ledger, signer, vault):
    state = await orchestrator.withdraw(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.SUCCEEDED
    assert signer.labels() == ["withdraw"]
    assert ledger.count("allowance") == 0
    assert ledger.count("asset") == 0


@pytest.mark.asyncio
async def test_second_request_for_same_pair_is_rejected(orchestrator, ledger, signer, vault):
    ledger.set(ASSET, "allowance", AMOUNT)
    gate = asyncio.Event()
    signer.handles = [FakeHandle("0x" + "e" * 64, gate=gate)]

    first = asyncio.create_task(orchestrator.deposit(vault, WALLET, AMOUNT))
    await asyncio.sleep(0.01)
    assert orchestrator.state_of(WALLET, VAULT_A).status is MutationStatus.AWAITING_CONFIRMATION

    with pytest.raises(MutationBusyError):
        await orchestrator.deposit(vault, WALLET, AMOUNT)
    with pytest.raises(MutationBusyError):
        await orchestrator.withdraw(vault, WALLET, AMOUNT)

    # another vault for the same wallet proceeds independently
    other = await orchestrator.withdraw(make_descriptor(VAULT_B, "Bravo"), WALLET, AMOUNT)
    assert other.status is MutationStatus.SUCCEEDED

    gate.set()
    assert (await first).status is MutationStatus.SUCCEEDED

    again = await orchestrator.deposit(vault, WALLET, AMOUNT)
    assert again.status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_user_decline_fails_and_releases_slot(orchestrator, signer, sink, vault):
    signer.decline = True

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.FAILED
    assert "declined" in state.reason
    assert sink.kinds()[-1] == "error"
    assert not orchestrator.state_of(WALLET, VAULT_A).is_active

    signer.decline = False
    assert (await orchestrator.deposit(vault, WALLET, AMOUNT)).status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_reverted_action_fails(orchestrator, ledger, signer, vault):
    ledger.set(ASSET, "allowance", AMOUNT)
    signer.handles = [FakeHandle("0x" + "f" * 64, status=0)]

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.FAILED
    assert "reverted" in state.reason


@pytest.mark.asyncio
async def test_failed_approval_never_submits_deposit(orchestrator, signer, vault):
    signer.handles = [FakeHandle("0x" + "a" * 64, status=0)]

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.FAILED
    assert signer.labels() == ["approve"]


@pytest.mark.asyncio
async def test_confirmation_timeout_is_indeterminate_until_reconciled(
    orchestrator, ledger, signer, vault
):
    ledger.set(ASSET, "allowance", AMOUNT)
    pending = FakeHandle("0x" + "d" * 64, mined=False)
    signer.handles = [pending]

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.INDETERMINATE
    assert state.tx_hash == pending.tx_hash
    assert state.pending_stage == "deposit"
    with pytest.raises(MutationBusyError):
        await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert await orchestrator.reconcile() == {}
    assert orchestrator.state_of(WALLET, VAULT_A).status is MutationStatus.INDETERMINATE

    pending.mined = True
    resolved = await orchestrator.reconcile()

    assert resolved[(WALLET, VAULT_A)].status is MutationStatus.SUCCEEDED
    assert orchestrator.state_of(WALLET, VAULT_A).reason is None


@pytest.mark.asyncio
async def test_refresh_resolves_timed_out_deposit(ledger, signer, sink, seed_vault, vault):
    seed_vault(vault, total_assets=AMOUNT, total_supply=AMOUNT)
    ledger.set(ASSET, "allowance", AMOUNT)
    aggregator = StateAggregator(VaultRegistry([vault]), ledger)
    orchestrator = TransactionOrchestrator(
        ledger, signer, aggregator=aggregator, sink=sink, confirmation_timeout=0.01
    )
    pending = FakeHandle("0x" + "d" * 64, mined=False)
    signer.handles = [pending]

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)
    assert state.status is MutationStatus.INDETERMINATE

    await aggregator.refresh()
    assert orchestrator.state_of(WALLET, VAULT_A).status is MutationStatus.INDETERMINATE

    pending.mined = True
    await aggregator.refresh()

    assert orchestrator.state_of(WALLET, VAULT_A).status is MutationStatus.SUCCEEDED
    again = await orchestrator.deposit(vault, WALLET, AMOUNT)
    assert again.status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_new_request_reconciles_a_mined_indeterminate_pair(
    orchestrator, ledger, signer, vault
):
    ledger.set(ASSET, "allowance", AMOUNT)
    pending = FakeHandle("0x" + "d" * 64, mined=False)
    signer.handles = [pending]
    await orchestrator.deposit(vault, WALLET, AMOUNT)

    pending.mined = True
    state = await orchestrator.withdraw(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.SUCCEEDED
    assert signer.labels() == ["deposit", "withdraw"]

@pytest.mark.asyncio
async def test_late_approval_still_fails_the_deposit(orchestrator, signer, vault):
    approval = FakeHandle("0x" + "c" * 64, mined=False)
    signer.handles = [approval]

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)
    assert state.status is MutationStatus.INDETERMINATE
    assert state.pending_stage == "approval"

    approval.mined = True
    resolved = await orchestrator.reconcile()

    assert resolved[(WALLET, VAULT_A)].status is MutationStatus.FAILED
    assert "not submitted" in resolved[(WALLET, VAULT_A)].reason
    assert signer.labels() == ["approve"]


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_strand_the_slot(orchestrator, ledger, signer, vault):
    ledger.set(ASSET, "allowance", AMOUNT)
    gate = asyncio.Event()
    signer.handles = [FakeHandle("0x" + "b" * 64, gate=gate)]

    caller = asyncio.create_task(orchestrator.deposit(vault, WALLET, AMOUNT))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert orchestrator.state_of(WALLET, VAULT_A).is_active
    gate.set()
    await orchestrator.join()

    assert orchestrator.state_of(WALLET, VAULT_A).status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_success_refreshes_snapshot_and_positions(ledger, signer, sink, vault):
    ledger.set(VAULT_A, "asset", ASSET)
    ledger.set(ASSET, "allowance", AMOUNT)
    snapshot = MagicMock()
    aggregator = MagicMock()
    aggregator.current = None
    aggregator.refresh = AsyncMock(return_value=snapshot)
    positions = MagicMock()
    positions.refresh_positions = AsyncMock(return_value=())
    orchestrator = TransactionOrchestrator(
        ledger, signer, aggregator=aggregator, positions=positions, sink=sink
    )

    await orchestrator.deposit(vault, WALLET, AMOUNT)

    aggregator.refresh.assert_awaited_once()
    positions.refresh_positions.assert_awaited_once_with(WALLET, snapshot)


@pytest.mark.asyncio
async def test_failure_does_not_refresh(ledger, signer, sink, vault):
    signer.decline = True
    aggregator = MagicMock()
    aggregator.current = None
    aggregator.refresh = AsyncMock()
    ledger.set(VAULT_A, "asset", ASSET)
    ledger.set(ASSET, "allowance", 0)
    orchestrator = TransactionOrchestrator(ledger, signer, aggregator=aggregator, sink=sink)

    await orchestrator.deposit(vault, WALLET, AMOUNT)

    aggregator.refresh.assert_not_awaited()


@pytest.mark.asyncio
async def test_sink_errors_do_not_break_the_mutation(ledger, signer, vault):
    ledger.set(ASSET, "allowance", AMOUNT)
    ledger.set(VAULT_A, "asset", ASSET)
    broken_sink = MagicMock()
    broken_sink.emit.side_effect = RuntimeError("sink offline")
    orchestrator = TransactionOrchestrator(ledger, signer, sink=broken_sink)

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.SUCCEEDED
    assert broken_sink.emit.call_count == 2


@pytest.mark.asyncio
async def test_signer_must_control_wallet(orchestrator, vault):
    with pytest.raises(InvalidConfigurationError, match="cannot act for wallet"):
        await orchestrator.deposit(vault, "0x" + "9" * 40, AMOUNT)


def test_non_positive_amount_is_rejected(vault):
    with pytest.raises(InvalidConfigurationError, match="must be positive"):
        MutationRequest(MutationKind.DEPOSIT, vault, WALLET, 0, 18)


@pytest.mark.asyncio
async def test_unexpected_signer_error_fails_without_raising(
    orchestrator, ledger, signer, sink, vault
):
    ledger.set(ASSET, "allowance", AMOUNT)
    signer.submit = AsyncMock(side_effect=ValueError("insufficient funds for gas * price + value"))

    state = await orchestrator.deposit(vault, WALLET, AMOUNT)

    assert state.status is MutationStatus.FAILED
    assert "insufficient funds" in state.reason
    assert sink.kinds()[-1] == "error"
    assert not orchestrator.state_of(WALLET, VAULT_A).is_active
