"""EIP-712 order signing and signer recovery via ``eth_account``."""

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount

from zkfill.orders import PublishedOrder, typed_data


def maker_account(private_key: str) -> LocalAccount:
    return Account.from_key(private_key)


def sign_order(
    order: PublishedOrder, account: LocalAccount, chain_id: int, router: str
) -> tuple[str, str]:
    """Sign *order* for settlement; returns ``(signature, order_hash)`` as 0x hex."""
    signable = encode_typed_data(full_message=typed_data(order, chain_id, router))
    signed = account.sign_message(signable)
    return "0x" + bytes(signed.signature).hex(), "0x" + bytes(signed.message_hash).hex()


def recover_order_signer(
    order: PublishedOrder, signature: str, chain_id: int, router: str
) -> str:
    """Checksummed address that produced *signature* over *order*."""
    signable = encode_typed_data(full_message=typed_data(order, chain_id, router))
    return Account.recover_message(signable, signature=signature)
