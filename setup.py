#!/usr/bin/env python3

import os
from setuptools import setup, find_packages

here = os.path.abspath(os.path.dirname(__file__))

readme_path = os.path.join(here, "README.md")
with open(readme_path, encoding="utf-8") as f:
    long_description = f.read()

version_path = os.path.join(here, "stellar", "version.py")
version_dict = {}
with open(version_path) as f:
    exec(f.read(), version_dict)
__version__ = version_dict.get("__version__", "0.3.0")

# Core requirements
install_requires = []
req_path = os.path.join(here, "requirements.txt")
if os.path.exists(req_path):
    with open(req_path, encoding="utf-8") as f:
        install_requires = [
            line.strip() for line in f if not line.startswith("#") and line.strip()
        ]
else:
    # Define core requirements manually if file not found
    install_requires = [
        "click>=7.1.2",
        "docker>=4.2.0",
        "rich",
        "boto3",
        "PyYAML>=5.4",
    ]

extras_require = {"test": []}

req_file = os.path.join(here, "requirements.test.txt")
if os.path.exists(req_file):
    with open(req_file, encoding="utf-8") as f:
        extras_require["test"] = [
            line.strip() for line in f if not line.startswith("#") and line.strip()
        ]

setup(
    name="stellar",
    version=__version__,
    description="Provisioning of serverless functions for tail-latency benchmarks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Benchmark",
        "Topic :: System :: Distributed Computing",
    ],
    keywords="serverless, faas, benchmark, lambda, cloud-run, tail-latency",
    packages=find_packages(where=here, exclude=["tests", "tests.*"]) + ["stellar.configs"],
    package_dir={
        "stellar": "stellar",
        "stellar.configs": "config",
    },
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "stellar=stellar.cli:main",
        ],
    },
    package_data={
        "stellar.configs": ["systems.json"],
    },
)
