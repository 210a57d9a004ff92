"""
Setup script for netimpair, the WAN impairment test tool.

Install in development mode:
    pip install -e .[dev]

Then run:
    netimpair --help
"""

from setuptools import setup, find_packages

setup(
    name="netimpair",
    version="0.1.0",
    description="WAN impairment emulation (loss, delay, jitter, bandwidth) with tc/netem and IFB",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-mock",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "netimpair=netimpair.cli:main",
        ],
    },
)
