""" ABI-level cffi bindings to the system OpenSSL ``libcrypto``.

Only the handful of symbols needed to compute message digests through the
EVP interface are declared. The library is loaded lazily, on first use, so
that the rest of toyrsa (which does all of its big number arithmetic in
python) keeps working on systems without a loadable ``libcrypto``.
"""

import functools
import sys
import threading

import cffi
import pytest

_FFI = cffi.FFI()

_FFI.cdef("""
typedef struct evp_md_st EVP_MD;
typedef struct engine_st ENGINE;

unsigned long OpenSSL_version_num(void);
unsigned long SSLeay(void);
const char *OpenSSL_version(int type);
const char *SSLeay_version(int type);

const EVP_MD *EVP_get_digestbyname(const char *name);
int EVP_Digest(const char *data, size_t count, unsigned char *md,
               unsigned int *size, const EVP_MD *type, ENGINE *impl);

unsigned long ERR_get_error(void);
""")

# Largest digest any EVP_MD may produce
EVP_MAX_MD_SIZE = 64


class OpenSSLVersion:
    V1_0 = "1_0"
    V1_1 = "1_1"
    V3 = "3"


_C = None
_lock = threading.Lock()


def get_lib():
    """Returns the loaded ``libcrypto``, loading it on first call.

    Raises:
        Exception: if the library cannot be located or loaded.
    """
    global _C

    with _lock:
        if _C is None:
            try:
                _C = _FFI.dlopen("crypto")
            except OSError as e:
                raise Exception("Cannot load the OpenSSL crypto library: %s" % e)
    return _C


def is_available():
    """Returns True if the system ``libcrypto`` can be loaded."""
    try:
        get_lib()
    except Exception:  # pylint: disable=broad-except
        return False
    return True


def get_openssl_version(lib=None):
    """Returns the OpenSSL version family that is used for bindings."""

    if lib is None:
        lib = get_lib()

    try:
        full_version = lib.OpenSSL_version_num()
    except AttributeError:
        full_version = lib.SSLeay()

    if full_version >> 28 >= 3:
        return OpenSSLVersion.V3

    version = full_version >> 20
    if version == 0x100:
        return OpenSSLVersion.V1_0
    return OpenSSLVersion.V1_1


def version():
    """Returns the OpenSSL version string, eg. 'OpenSSL 3.0.2 15 Mar 2022'."""
    lib = get_lib()
    if get_openssl_version(lib) == OpenSSLVersion.V1_0:
        cstr = lib.SSLeay_version(0)
    else:
        cstr = lib.OpenSSL_version(0)

    return _FFI.string(cstr).decode("utf8")


def get_errors():
    """Drains and returns the OpenSSL error queue as a list of codes."""
    lib = get_lib()
    errors = []
    err = lib.ERR_get_error()
    while err != 0:
        errors += [err]
        err = lib.ERR_get_error()
    return errors


def needs_openssl(test):
    """Decorates a test to skip it when ``libcrypto`` cannot be loaded.

    The library is only looked up when the test runs.
    """
    @functools.wraps(test)
    def wrapper(*args, **kwargs):
        if not is_available():
            pytest.skip("libcrypto cannot be loaded")
        return test(*args, **kwargs)
    return wrapper


# ---------- Tests ------------


@needs_openssl
def test_version():
    print(version())
    assert version()
    assert get_openssl_version() in [OpenSSLVersion.V1_0, OpenSSLVersion.V1_1, OpenSSLVersion.V3]


@needs_openssl
def test_errors():
    get_errors()
    assert get_errors() == []


@needs_openssl
def test_double_load():
    assert get_lib() is get_lib()


@needs_openssl
def test_evp_sha256():
    lib = get_lib()
    md = lib.EVP_get_digestbyname(b"sha256")
    assert md != _FFI.NULL

    out = _FFI.new("unsigned char[]", EVP_MAX_MD_SIZE)
    out_len = _FFI.new("unsigned int *")
    assert lib.EVP_Digest(b"abc", 3, out, out_len, md, _FFI.NULL) == 1
    assert out_len[0] == 32


@needs_openssl
def test_unknown_digest():
    assert get_lib().EVP_get_digestbyname(b"sha999") == _FFI.NULL


def test_needs_openssl_is_lazy(monkeypatch):
    calls = []

    def unavailable():
        calls.append(1)
        return False

    monkeypatch.setattr(sys.modules[__name__], "is_available", unavailable)

    @needs_openssl
    def uses_libcrypto():
        return get_lib()

    # Decorating looks nothing up
    assert calls == []

    with pytest.raises(pytest.skip.Exception):
        uses_libcrypto()
    assert calls == [1]
