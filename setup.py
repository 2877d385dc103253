#!/usr/bin/env python

from setuptools import setup

setup(
    name="xcgen",
    version="0.1.0",
    packages=[
        "xcgen",
        "xcgen.details",
        "xcgen.details.tools",
        "xcgen.generators",
        "xcgen.generators.xcode",
    ],
    python_requires=">=3.9",
    entry_points={"console_scripts": ["xcgen = xcgen.__main__:main"]},
)
