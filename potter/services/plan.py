"""Instructions and signers for one atomic transaction"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey


@dataclass
class TransactionPlan:
    """Everything one operation submits, in execution order.

    ``signers`` are required in addition to the fee payer (e.g. a fresh mint
    keypair). ``ensured_accounts`` are associated token accounts whose
    creation instruction this plan carries.
    """
    operation: str
    fee_payer: Pubkey
    instructions: List[Instruction] = field(default_factory=list)
    signers: List[Keypair] = field(default_factory=list)
    ensured_accounts: List[Pubkey] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)

    def add(self, instruction: Instruction) -> None:
        self.instructions.append(instruction)

    def schedules_creation_of(self, address: Pubkey) -> bool:
        return address in self.ensured_accounts

    @property
    def is_empty(self) -> bool:
        return not self.instructions
