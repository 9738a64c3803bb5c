# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

from setuptools import setup, find_packages
from pathlib import Path

version_file = Path(__file__).parent / 'xpinv/_version.py'
dd = {}
with open(version_file.absolute(), 'r') as fp:
    exec(fp.read(), dd)
__version__ = dd['__version__']

setup(
    name='xpinv',
    version=__version__,
    description='Filtered and weighted matrix pseudoinverse',
    long_description=("Filtered and weighted matrix pseudoinverse for "
                      "response matrix correction\n"),
    author='Xpinv developers',
    packages=find_packages(include=['xpinv', 'xpinv.*']),
    install_requires=['lark', 'numpy', 'scipy'],
    license='Apache 2.0',
    extras_require={
        'tests': ['pytest'],
    },
)
