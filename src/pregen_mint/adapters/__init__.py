from .bases import (
    CustodialSession,
    CustodialWalletService,
    ShareStore,
    SmartAccount,
    UserOperationRelay,
    SignableMessage,
)
from .custody import LocalCustodialService, LocalCustodialSession
from .stores import InMemoryShareStore, SupabaseShareStore
from .evm import (
    AlchemyAccountRelay,
    ModularSmartAccount,
    SigningAdapter,
    TransactionSubmitter,
)

__all__ = [
    "CustodialSession",
    "CustodialWalletService",
    "ShareStore",
    "SmartAccount",
    "UserOperationRelay",
    "SignableMessage",
    "LocalCustodialService",
    "LocalCustodialSession",
    "InMemoryShareStore",
    "SupabaseShareStore",
    "AlchemyAccountRelay",
    "ModularSmartAccount",
    "SigningAdapter",
    "TransactionSubmitter",
]
