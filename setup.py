"""fieldsync setup - offline-first sync for field maintenance records."""
from setuptools import setup, find_packages

setup(
    name="fieldsync",
    version="1.0.0",
    description="fieldsync: offline mutation queue and sync engine for field maintenance records",
    packages=find_packages(include=["fieldsync", "fieldsync.*", "fieldsync_cli", "fieldsync_cli.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "requests>=2.28",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "fieldsync=fieldsync_cli.main:cli",
        ],
    },
)
