# The toyrsa version
VERSION = '0.1.0'


__all__ = ["attacks", "bindings", "bleichenbacher", "bn", "digest", "encode", "pack", "padding", "primes", "rsa"]

def run_tests():
    # These are only needed in case we test
    import pytest
    import os.path
    import glob

    # List all toyrsa files in the directory
    toyrsa_dir = os.path.dirname(os.path.realpath(__file__))
    pyfiles = glob.glob(os.path.join(toyrsa_dir, '*.py'))

    # Run the test suite
    print("Directory: %s" % pyfiles)
    res = pytest.main(["-v", "-x", "--doctest-modules"] + pyfiles)
    print("Result: %s" % res)

    # Return exit result
    return res
