#!/usr/bin/env python

from setuptools import setup

import toyrsa

setup(name='toyrsa',
      version=toyrsa.VERSION,
      description='An educational RSA toolkit, with classic attacks against textbook RSA and PKCS#1 v1.5',
      author='toyrsa developers',
      packages=['toyrsa'],
      license="2-clause BSD",
      long_description="""An RSA implementation built from the math up (primes, keys, PKCS#1 v1.5 padding) together with the attacks that break its weak configurations: e=3 broadcast, unpadded message recovery, e=3 signature forgery, parity oracle and Bleichenbacher's padding oracle.""",

      python_requires=">=3.6",
      tests_require = [
            "pytest >= 2.5.0",
            "paver >= 1.2.3",
            "pytest-cov >= 1.8.1",
            ],
      install_requires=[
            "cffi >= 1.0.0",
            "pytest >= 2.5.0",
            "msgpack >= 1.0.0",
            "pycryptodome >= 3.9.0",
      ],
      extras_require={
            "test": [
                  "pytest-cov >= 1.8.1",
                  "paver >= 1.2.3",
            ],
      },
      zip_safe=False,
)
