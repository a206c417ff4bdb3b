"""
Packaging for the instrument link library. Tests are run with `python -m pytest` after
installing the test extra: `pip install -e .[test]`
"""

from setuptools import setup

setup(
    name='instrument-link-py',
    version='0.0.1',
    description='Maintains a TCP or serial link to a laboratory instrument and exchanges framed messages over it.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['instrumentlink', 'instrumentlink.conduit', 'instrumentlink.config', 'instrumentlink.protocol',
              'instrumentlink.support', 'instrumentlink.transport'],
    install_requires=[
        'pyserial',
        'configobj',
    ],
    extras_require={
        'test': ['PyHamcrest', 'timeout-decorator', 'pytest'],
    },
    entry_points={
        'console_scripts': ['instrument-monitor = instrumentlink.monitor:main'],
    },
    zip_safe=False,
)
