#!/usr/bin/env python3
from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3


def _with_0x(value: str) -> str:
    return value if value.startswith("0x") else "0x" + value


class Wallet:
    """
    Свежий EVM кошелёк: адрес + приватный ключ.
    Приватный ключ никуда не отправляется, наружу уходит только подпись.
    """

    def __init__(self, private_key: str):
        self.private_key = _with_0x(private_key)
        self.account = Web3().eth.account.from_key(self.private_key)
        self.address = Web3.to_checksum_address(self.account.address)

    @classmethod
    def create(cls) -> "Wallet":
        """Генерирует новый случайный кошелёк."""
        account = Account.create()
        return cls(account.key.hex())

    def sign_message(self, text: str) -> str:
        """
        Подписывает строку-челлендж (EIP-191 personal_sign).

        Args:
            text: Сообщение от сервера для подписи

        Returns:
            Подпись в hex формате с префиксом 0x
        """
        message = encode_defunct(text=text)
        signed_message = self.account.sign_message(message)
        return _with_0x(signed_message.signature.hex())


def recover_signer(text: str, signature: str) -> str:
    """Восстанавливает адрес, которым была сделана подпись сообщения."""
    message = encode_defunct(text=text)
    address = Account.recover_message(message, signature=signature)
    return Web3.to_checksum_address(address)
