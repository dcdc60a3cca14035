import os.path
import re

from paver.tasks import task
from paver.easy import sh


def tell(x):
    print()
    print(("-"*10)+ str(x) + ("-"*10))
    print()


def version():
    lib = open(os.path.join("toyrsa", "__init__.py")).read()
    return re.findall("VERSION.*=.*['\"](.*)['\"]", lib)[0]


@task
def build(quiet=True):
    """ Builds the toyrsa distribution. """
    tell("Build dist %s" % version())
    sh('python setup.py sdist', capture=quiet)


@task
def test(quiet=False):
    """ Run the toyrsa tests, doctests and examples, with coverage. """
    tell("Run the tests")
    sh('py.test -v --doctest-modules --cov=toyrsa toyrsa/*.py examples/*.py', capture=quiet)


@task
def lint(quiet=False):
    """ Run the python linter on toyrsa. """
    tell("Run pylint on the library")
    sh('pylint toyrsa', capture=quiet)


@task
def wc(quiet=False):
    """ Count the toyrsa library and example code lines. """
    tell("Counting code lines")

    print("\nLibrary code:")
    sh('wc -l toyrsa/*.py', capture=quiet)

    print("\nExample code:")
    sh('wc -l examples/*.py', capture=quiet)

    print("\nAdministration code:")
    sh('wc -l pavement.py setup.py', capture=quiet)
