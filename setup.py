#!/usr/bin/env python3
"""
Setup script for the stream-grab package.
"""
from setuptools import setup, find_packages

# install with
#   pip install -e .[test]

setup(
    name="stream-grab",
    version="0.1.0",
    description="Extract media streams from web pages and combine them with ffmpeg",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "click",
        "loguru",
        "pydub",
        "python-dotenv",
        "requests",
        "questionary",
        "rich",
        "browser-cookie3",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "streamgrab=stream_grab.cli:main",
        ],
    },
    python_requires=">=3.8",
)
