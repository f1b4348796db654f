from zorobot.wallet import Wallet, recover_signer


def test_create_gives_checksum_address_and_hex_key():
    wallet = Wallet.create()

    assert wallet.address.startswith("0x")
    assert len(wallet.address) == 42
    assert wallet.private_key.startswith("0x")
    assert len(wallet.private_key) == 66


def test_wallet_from_key_without_prefix_derives_same_address():
    wallet = Wallet.create()
    restored = Wallet(wallet.private_key[2:])

    assert restored.address == wallet.address


def test_signature_recovers_to_signer_address():
    wallet = Wallet.create()
    message = "Sign in to Zoro\nNonce: 123456"

    signature = wallet.sign_message(message)

    assert signature.startswith("0x")
    assert recover_signer(message, signature) == wallet.address


def test_signature_does_not_match_other_wallet():
    wallet = Wallet.create()
    other = Wallet.create()
    signature = wallet.sign_message("hello")

    assert recover_signer("hello", signature) != other.address
