# A verifier that does not check that the digest is at the very end of a
# PKCS#1 v1.5 signature block accepts signatures forged without the private
# key, for e = 3 and a large enough modulus.

from toyrsa.rsa import generate_keypair
from toyrsa.padding import PKCS1v1_5, BadPKCS1v1_5
from toyrsa.digest import SHA1, SHA256
from toyrsa.attacks import forge_signature

import pytest


def forge(pub, message, digest=SHA1):
    """Forges a signature on message, knowing only the public key"""
    return forge_signature(pub, digest, message)


@pytest.mark.parametrize("bits, digest", [(1024, SHA1), (2048, SHA256)])
def test_forgery(bits, digest):
    pub, priv = generate_keypair(bits)

    signature = forge(pub, b"hi mom", digest)
    assert pub.verify(BadPKCS1v1_5, digest, b"hi mom", signature)

    # Careful verifiers are not fooled
    assert not pub.verify(PKCS1v1_5, digest, b"hi mom", signature)

    # And the signature is not the real one
    assert signature != priv.sign(BadPKCS1v1_5, digest, b"hi mom")


def test_forgery_needs_e_3():
    pub, _ = generate_keypair(1024, e=65537)

    with pytest.raises(Exception) as excinfo:
        forge(pub, b"hi mom")
    assert 'exponent' in str(excinfo.value)


if __name__ == "__main__":

    import argparse

    parser = argparse.ArgumentParser(description='Forge a signature against a flawed verifier.')
    parser.add_argument('--bits', type=int, default=1024, help='RSA modulus size')
    parser.add_argument('message', nargs='?', default="hi mom", help='The message to sign')

    args = parser.parse_args()

    pub, _ = generate_keypair(args.bits)
    message = args.message.encode("utf8")

    signature = forge(pub, message)
    if signature is None:
        print("The modulus is too small for a forgery")
    else:
        print("Forged signature: %x" % signature)
        print("Accepted: %s" % pub.verify(BadPKCS1v1_5, SHA1, message, signature))
