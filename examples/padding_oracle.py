# A server that decrypts PKCS#1 v1.5 ciphertexts, and only tells whether
# decryption failed, leaks the plaintext of any ciphertext to an attacker
# willing to send it enough queries (Bleichenbacher, CRYPTO '98).
#
# Run with --bits to choose the key size, and --verbose to follow the
# progress of the attack.

import logging
import time

from toyrsa.rsa import generate_keypair
from toyrsa.padding import PKCS1v1_5
from toyrsa.bn import binary
from toyrsa.bleichenbacher import bleichenbacher_attack

import pytest


class Server(object):
    """Decrypts messages, and tells whether decryption failed"""

    def __init__(self, bits, strict=True):
        self.pub, self._priv = generate_keypair(bits)
        self.strict = strict
        self.queries = 0

    def receive(self, ciphertext):
        self.queries += 1

        if self.strict:
            return self._priv.decrypt(PKCS1v1_5, ciphertext) is not None

        # Only checks the header, as some TLS stacks did
        block = self._priv.textbook_process(ciphertext)
        return binary(block, self.pub.len_bytes())[:2] == b"\x00\x02"


def attack(server, ciphertext, max_queries=None):
    return bleichenbacher_attack(server.pub, ciphertext, server.receive, max_queries)


def test_padding_oracle():
    server = Server(256, strict=False)
    ciphertext = server.pub.encrypt(PKCS1v1_5, b"kick it, CC")

    assert attack(server, ciphertext) == b"kick it, CC"
    print("Queries: %d" % server.queries)


def test_padding_oracle_gives_up():
    server = Server(256)
    ciphertext = server.pub.encrypt(PKCS1v1_5, b"kick it, CC")

    with pytest.raises(Exception):
        attack(server, ciphertext, max_queries=1000)
    assert server.queries == 1000


if __name__ == "__main__":

    import argparse

    parser = argparse.ArgumentParser(description='Run the padding oracle attack against a toy server.')
    parser.add_argument('--bits', type=int, default=256, help='RSA modulus size')
    parser.add_argument('--strict', action='store_true', help='Check the whole padding on the server')
    parser.add_argument('--verbose', action='store_true', help='Log the progress of the attack')
    parser.add_argument('message', nargs='?', default="kick it, CC", help='The secret message')

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(message)s")

    server = Server(args.bits, strict=args.strict)
    ciphertext = server.pub.encrypt(PKCS1v1_5, args.message.encode("utf8"))

    t0 = time.time()
    plaintext = attack(server, ciphertext)
    t1 = time.time()

    print("Recovered: %r" % plaintext)
    print("Queries: %d, time: %.2f sec" % (server.queries, t1 - t0))
