import os

from setuptools import setup, find_packages


def _read_file(path: str) -> str:
    with open(path) as f:
        return f.read().strip()


# Versions
file_dir = os.path.dirname(os.path.realpath(__file__))
starkcast_version = _read_file(os.path.join(file_dir, 'starkcast', 'VERSION'))
packages = find_packages(include=['starkcast', 'starkcast.*'])


setup(
    # Metadata
    name='starkcast',
    version=starkcast_version,
    license='MIT',
    description='Starkcast declares, deploys and invokes Starknet contracts from python scripts and the command line. '
                'It encodes and signs account transactions, estimates fees, sequences nonces and tracks transactions '
                'until they are accepted.',

    # Dependencies
    python_requires='>=3.8,<4',
    install_requires=[
        'web3>=6,<8',
        'starknet-py>=0.18,<1',
        'requests>=2.28,<3',
        'urllib3>=1.26',
        'parameterized>=0.8,<1',
        'appdirs>=1.4,<1.5',
        'argcomplete>=1,<4',
    ],

    # Contents
    packages=packages,
    package_data={'starkcast': ['VERSION']},
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "starkcast=starkcast.__main__:main"
        ]
    },
)
