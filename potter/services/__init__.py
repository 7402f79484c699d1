"""Potter token factory services"""
from .solana_client import SolanaClient
from .addresses import AddressDeriver
from .account_ensurer import AccountEnsurer
from .errors import ErrorKind, OperationError, translate
from .instructions import InstructionBuilder
from .orchestrator import OperationResult, OperationState, TransactionOrchestrator
from .factory_service import TokenFactoryService

__all__ = [
    "SolanaClient",
    "AddressDeriver",
    "AccountEnsurer",
    "InstructionBuilder",
    "TransactionOrchestrator",
    "TokenFactoryService",
    # Results and errors
    "OperationResult",
    "OperationState",
    "ErrorKind",
    "OperationError",
    "translate",
]
