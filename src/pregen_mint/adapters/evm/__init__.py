from .relay import AlchemyAccountRelay, JsonRpcClient, ModularSmartAccount, get_user_operation_hash
from .signatures import SigningAdapter, hash_message, normalize_recovery_id
from .submitter import TransactionSubmitter
