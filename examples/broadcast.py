# The same message, encrypted without padding for three recipients that
# use e = 3, can be read by anyone (Hastad's broadcast attack).

from toyrsa.rsa import generate_keypair
from toyrsa.bn import from_binary, binary
from toyrsa.attacks import e_3_broadcast_attack


def recipients(bits=1024):
    """Three independent recipients, with the default exponent 3"""
    return [generate_keypair(bits) for _ in range(3)]


def broadcast(public_keys, message):
    """Sends the same plaintext to all recipients"""
    m = from_binary(message)
    return [(pub, pub.textbook_process(m)) for pub in public_keys]


def eavesdrop(intercepted):
    m = e_3_broadcast_attack(intercepted)
    return binary(m)


def test_broadcast():
    keys = recipients()
    public_keys = [pub for pub, _ in keys]

    intercepted = broadcast(public_keys, b"Attack at dawn")

    # All recipients can read it
    for (pub, priv), (_, c) in zip(keys, intercepted):
        assert binary(priv.textbook_process(c)) == b"Attack at dawn"

    # And so can the eavesdropper
    assert eavesdrop(intercepted) == b"Attack at dawn"


def test_broadcast_long():
    keys = recipients(512)
    message = b"x" * 60

    assert eavesdrop(broadcast([pub for pub, _ in keys], message)) == message
