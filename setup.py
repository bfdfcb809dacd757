#!/usr/bin/python3
# Setup file for argit
# Copyright (C) 2026 The argit authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]


setup(
    name="argit",
    version="0.1.0",
    description="Git repositories stored as a single tar archive",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["argit"],
    install_requires=["dulwich>=0.25.0"],
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["argit=argit.cli:_main"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "License :: OSI Approved :: GNU General Public License v2 or later (GPLv2+)",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
