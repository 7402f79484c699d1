"""Integration tests: factory service against the in-memory ledger"""
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from potter.services.errors import ErrorKind, OperationError
from potter.services.instructions import sighash
from potter.services.orchestrator import OperationState


class TestEndToEnd:
    """Factory -> token -> whitelist -> transfer"""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, service, ledger, authority):
        x, y = Keypair().pubkey(), Keypair().pubkey()

        result = await service.create_factory()
        assert result.ok
        assert (await service.get_factory()).token_count == 0

        result = await service.create_token(
            total_supply=1000, decimals=6, name="Potter Token", symbol="POT", uri="",
        )
        assert result.ok, result.error
        assert result.context["token_index"] == 0
        assert result.context["raw_total_supply"] == 1_000_000_000
        assert (await service.get_factory()).token_count == 1

        token = await service.get_token(0)
        assert token.total_supply == 1_000_000_000
        assert token.decimals == 6
        assert ledger.balance(authority, token.mint) == 1_000_000_000

        result = await service.add_to_whitelist(0, [x])
        assert result.ok
        assert x in await service.get_whitelist(0)

        result = await service.transfer_tokens(0, 10, x)
        assert result.ok, result.error
        assert ledger.balance(x, token.mint) == 10_000_000

        result = await service.transfer_tokens(0, 10, y)
        assert result.state == OperationState.FAILED
        assert result.error.kind == ErrorKind.ADDRESS_NOT_WHITELISTED
        assert result.to_response()["message"] == "Address not whitelisted for transfers."
        # the account creation rode in the rejected transaction
        assert ledger.balance(y, token.mint) is None
        assert ledger.balance(authority, token.mint) == 990_000_000


class TestFactory:
    @pytest.mark.asyncio
    async def test_create_factory_twice(self, service, ledger):
        assert (await service.create_factory()).ok
        submissions = len(ledger.submissions)

        result = await service.create_factory()

        assert result.error.kind == ErrorKind.ACCOUNT_ALREADY_EXISTS
        assert len(ledger.submissions) == submissions

    @pytest.mark.asyncio
    async def test_missing_factory(self, service, ledger):
        with pytest.raises(OperationError) as exc_info:
            await service.get_factory()
        assert exc_info.value.kind == ErrorKind.ACCOUNT_NOT_FOUND

        result = await service.create_token(total_supply=1, decimals=0, name="A", symbol="A", uri="")
        assert result.error.kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert ledger.submissions == []

    @pytest.mark.asyncio
    async def test_create_token_submits_one_transaction(self, service, ledger, authority):
        assert (await service.create_factory()).ok
        submissions = len(ledger.submissions)

        result = await service.create_token(total_supply=1000, decimals=6, name="Potter Token", symbol="POT", uri="")

        assert result.ok, result.error
        assert result.signature is not None
        assert len(ledger.submissions) == submissions + 1
        [instruction] = ledger.submissions[-1]
        assert bytes(instruction.data)[:8] == sighash("create_token")
        assert ledger.token(authority, 0).name == "Potter Token"

    @pytest.mark.asyncio
    async def test_indexes_are_sequential(self, token_service, ledger, authority):
        result = await token_service.create_token(total_supply=0, decimals=0, name="Second", symbol="TWO", uri="")

        assert result.context["token_index"] == 1
        tokens = await token_service.list_tokens()
        assert [t.index for t in tokens] == [0, 1]
        assert [t.symbol for t in tokens] == ["POT", "TWO"]

    @pytest.mark.asyncio
    async def test_list_skips_undecodable_records(self, token_service, ledger, deriver, authority):
        address, _ = deriver.derive_token_pda(authority, 0)
        ledger.accounts[address] = b"garbage"
        assert await token_service.list_tokens() == []

    @pytest.mark.asyncio
    async def test_list_skips_truncated_records(self, token_service, ledger, deriver, authority):
        address, _ = deriver.derive_token_pda(authority, 0)
        ledger.accounts[address] = ledger.accounts[address][:28]

        assert await token_service.list_tokens() == []
        with pytest.raises(OperationError) as exc_info:
            await token_service.get_token(0)
        assert exc_info.value.kind == ErrorKind.UNKNOWN_FAILURE

    @pytest.mark.asyncio
    async def test_validation_fails_before_network(self, token_service, ledger):
        submissions = len(ledger.submissions)

        result = await token_service.create_token(total_supply=1, decimals=0, name="n" * 33, symbol="N", uri="")

        assert result.error.kind == ErrorKind.NAME_TOO_LONG
        assert result.error.remote is False
        assert len(ledger.submissions) == submissions

    @pytest.mark.asyncio
    async def test_concurrent_create_token_loses_race(self, token_service, ledger, deriver, authority):
        """The loser of a token_count race is rejected, not renumbered"""
        taken, _ = deriver.derive_token_pda(authority, 1)
        ledger.before_next_submit.append(lambda l: l.accounts.__setitem__(taken, b"competitor"))
        submissions = len(ledger.submissions)

        result = await token_service.create_token(total_supply=1, decimals=0, name="Late", symbol="LATE", uri="")

        assert result.error.kind == ErrorKind.ACCOUNT_ALREADY_EXISTS
        assert len(ledger.submissions) == submissions + 1
        assert (await token_service.get_factory()).token_count == 1


class TestMintBurn:
    @pytest.mark.asyncio
    async def test_mint_creates_destination_account(self, token_service, ledger, wallet):
        result = await token_service.mint_tokens(0, "2.5", wallet)

        assert result.ok
        token = await token_service.get_token(0)
        assert ledger.balance(wallet, token.mint) == 2_500_000
        assert token.total_supply == 1_002_500_000
        assert len(ledger.submissions[-1]) == 2

        # the second mint finds the account
        assert (await token_service.mint_tokens(0, 1, wallet)).ok
        assert len(ledger.submissions[-1]) == 1

    @pytest.mark.asyncio
    async def test_burn(self, token_service, ledger, authority):
        result = await token_service.burn_tokens(0, 400)

        assert result.ok
        token = await token_service.get_token(0)
        assert token.total_supply == 600_000_000
        assert ledger.balance(authority, token.mint) == 600_000_000

    @pytest.mark.asyncio
    async def test_burn_more_than_balance(self, token_service, ledger, authority):
        result = await token_service.burn_tokens(0, 2000)

        assert result.error.kind == ErrorKind.UNKNOWN_PROGRAM_ERROR
        assert result.error.raw_code == 1
        assert (await token_service.get_token(0)).total_supply == 1_000_000_000

    @pytest.mark.asyncio
    async def test_mint_to_unknown_token(self, token_service, wallet):
        result = await token_service.mint_tokens(9, 1, wallet)
        assert result.error.kind == ErrorKind.ACCOUNT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_overflow_is_client_side(self, token_service, ledger, wallet):
        submissions = len(ledger.submissions)
        result = await token_service.mint_tokens(0, 2**64, wallet)
        assert result.error.kind == ErrorKind.AMOUNT_OVERFLOW
        assert len(ledger.submissions) == submissions

    @pytest.mark.asyncio
    async def test_ensured_account_created_concurrently(self, token_service, ledger, wallet):
        """Another client creates the destination between our read and our submit"""
        token = await token_service.get_token(0)
        ledger.before_next_submit.append(lambda l: l.create_token_account(wallet, token.mint))

        result = await token_service.mint_tokens(0, 1, wallet)

        assert result.ok, result.error
        assert len(ledger.submissions[-2]) == 2
        assert len(ledger.submissions[-1]) == 1
        assert ledger.balance(wallet, token.mint) == 1_000_000


class TestPause:
    @pytest.mark.asyncio
    async def test_pause_minting_toggles(self, token_service, wallet):
        original = (await token_service.get_token(0)).is_minting_paused

        assert (await token_service.pause_minting(0)).ok
        assert (await token_service.get_token(0)).is_minting_paused is not original

        result = await token_service.mint_tokens(0, 1, wallet)
        assert result.error.kind == ErrorKind.MINTING_PAUSED

        assert (await token_service.pause_minting(0)).ok
        assert (await token_service.get_token(0)).is_minting_paused is original
        assert (await token_service.mint_tokens(0, 1, wallet)).ok

    @pytest.mark.asyncio
    async def test_pause_token_blocks_transfers(self, token_service, authority):
        assert (await token_service.add_to_whitelist(0, [authority])).ok
        assert (await token_service.pause_token(0)).ok
        assert (await token_service.get_token(0)).is_paused is True

        result = await token_service.transfer_tokens(0, 1, authority)
        assert result.error.kind == ErrorKind.TOKEN_PAUSED


class TestWhitelist:
    @pytest.mark.asyncio
    async def test_created_with_initial_address(self, token_service, authority):
        whitelist = await token_service.get_whitelist(0)
        assert whitelist.addresses == [authority]

    @pytest.mark.asyncio
    async def test_add_skips_duplicates_and_listed(self, token_service, ledger, authority):
        a, b = Pubkey.new_unique(), Pubkey.new_unique()

        result = await token_service.add_to_whitelist(0, [a, authority, a, b])

        assert result.ok
        assert result.context["addresses"] == [str(a), str(b)]
        assert (await token_service.get_whitelist(0)).addresses == [authority, a, b]

    @pytest.mark.asyncio
    async def test_nothing_to_add_is_noop(self, token_service, ledger, authority):
        submissions = len(ledger.submissions)

        for addresses in ([], [authority]):
            result = await token_service.add_to_whitelist(0, addresses)
            assert result.ok
            assert result.signature is None

        assert len(ledger.submissions) == submissions

    @pytest.mark.asyncio
    async def test_empty_list_needs_no_token(self, service):
        result = await service.add_to_whitelist(42, [])
        assert result.ok

    @pytest.mark.asyncio
    async def test_remove(self, token_service, ledger, authority):
        a = Pubkey.new_unique()
        assert (await token_service.add_to_whitelist(0, [a])).ok

        result = await token_service.remove_from_whitelist(0, [authority, Pubkey.new_unique()])

        assert result.ok
        assert (await token_service.get_whitelist(0)).addresses == [a]


class TestAuthority:
    @pytest.mark.asyncio
    async def test_transfer_authority(self, token_service):
        new_authority = Keypair().pubkey()

        assert (await token_service.transfer_authority(0, new_authority)).ok
        assert (await token_service.get_token(0)).authority == new_authority

        result = await token_service.pause_token(0)
        assert result.error.kind == ErrorKind.UNAUTHORIZED


class TestReadsAndFailures:
    @pytest.mark.asyncio
    async def test_balance_of_new_holder(self, token_service, wallet):
        balance = await token_service.get_balance(0, wallet)
        assert balance.amount == 0
        assert balance.exists is False

    @pytest.mark.asyncio
    async def test_balance(self, token_service, authority):
        balance = await token_service.get_balance(0, authority)
        assert balance.amount == 1_000_000_000
        assert balance.decimals == 6

    @pytest.mark.asyncio
    async def test_user_declined(self, token_service, ledger):
        ledger.fail_next_submit(Exception("User rejected the request."))
        result = await token_service.pause_token(0)
        assert result.error.kind == ErrorKind.USER_DECLINED
        assert (await token_service.get_token(0)).is_paused is False

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, token_service, ledger):
        ledger.fail_next_submit(Exception(
            "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit."
        ))
        result = await token_service.pause_minting(0)
        assert result.error.kind == ErrorKind.INSUFFICIENT_FUNDS
