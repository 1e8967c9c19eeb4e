#!/usr/bin/python3
# Setup file for minigit
# Copyright (C) 2025 The minigit authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

import os

from setuptools import setup

tests_require = ["pytest"]

# Keep the metadata version in step with minigit.__version__
version = "0.1.0"

with open(
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "README.md"),
    encoding="utf-8",
) as f:
    long_description = f.read()

setup(
    name="minigit",
    version=version,
    description="Minimal git object store, pack reader and smart HTTP clone",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.9",
    packages=["minigit"],
    package_data={"": ["py.typed"]},
    install_requires=["urllib3>=1.25"],
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["minigit=minigit.cli:_main"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
