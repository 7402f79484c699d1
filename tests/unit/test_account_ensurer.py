"""Unit tests for lazy token account creation"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.pubkey import Pubkey

from potter.services.account_ensurer import AccountEnsurer
from potter.services.addresses import SYSTEM_PROGRAM_ID
from potter.services.plan import TransactionPlan


class TestAccountEnsurer:
    """Tests for AccountEnsurer"""

    @pytest.fixture
    def payer(self):
        return Pubkey.new_unique()

    @pytest.fixture
    def plan(self, payer):
        return TransactionPlan(operation="test", fee_payer=payer)

    @pytest.mark.asyncio
    async def test_missing_account_schedules_creation(self, ledger, deriver, plan):
        ensurer = AccountEnsurer(ledger, deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()

        address = await ensurer.ensure(owner, mint, plan)

        assert address == deriver.derive_associated_token_address(owner, mint)[0]
        assert len(plan.instructions) == 1
        assert plan.instructions[0].program_id == deriver.associated_token_program_id
        assert plan.ensured_accounts == [address]

    @pytest.mark.asyncio
    async def test_existing_account_produces_nothing(self, ledger, deriver, plan):
        ensurer = AccountEnsurer(ledger, deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()
        existing = ledger.create_token_account(owner, mint, 5)

        address = await ensurer.ensure(owner, mint, plan)

        assert address == existing
        assert plan.is_empty
        assert plan.ensured_accounts == []

    @pytest.mark.asyncio
    async def test_twice_in_one_plan_creates_once(self, ledger, deriver, plan):
        ensurer = AccountEnsurer(ledger, deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()

        first = await ensurer.ensure(owner, mint, plan)
        second = await ensurer.ensure(owner, mint, plan)

        assert first == second
        assert len(plan.instructions) == 1

    @pytest.mark.asyncio
    async def test_twice_in_sequence_creates_once(self, ledger, deriver):
        """The second call observes the account the first one created"""
        ensurer = AccountEnsurer(ledger, deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()

        first_plan = TransactionPlan(operation="first", fee_payer=ledger.public_key)
        await ensurer.ensure(owner, mint, first_plan)
        await ledger.sign_and_submit(first_plan.instructions)

        second_plan = TransactionPlan(operation="second", fee_payer=ledger.public_key)
        await ensurer.ensure(owner, mint, second_plan)

        assert len(first_plan.instructions) + len(second_plan.instructions) == 1
        assert ledger.balance(owner, mint) == 0

    @pytest.mark.asyncio
    async def test_reads_ledger_fresh(self, deriver, plan):
        reader = MagicMock()
        reader.read_account = AsyncMock(return_value=b"\x00" * 165)
        ensurer = AccountEnsurer(reader, deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()

        await ensurer.ensure(owner, mint, plan)
        await ensurer.ensure(owner, mint, plan)

        assert reader.read_account.await_count == 2
        reader.read_account.assert_awaited_with(deriver.derive_associated_token_address(owner, mint)[0])

    def test_create_instruction_layout(self, deriver, payer):
        ensurer = AccountEnsurer(MagicMock(), deriver)
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()

        ix = ensurer.create_instruction(payer, owner, mint)
        metas = ix.accounts

        assert bytes(ix.data) == b"\x00"
        assert [m.pubkey for m in metas] == [
            payer,
            deriver.derive_associated_token_address(owner, mint)[0],
            owner,
            mint,
            SYSTEM_PROGRAM_ID,
            deriver.token_program_id,
        ]
        assert metas[0].is_signer and metas[0].is_writable
        assert metas[1].is_writable and not metas[1].is_signer
        assert not any(m.is_signer for m in metas[1:])
