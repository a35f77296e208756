#!/usr/bin/env python3
from setuptools import setup, find_packages

setup(
    name="ratiosplit",
    version="0.1.0",
    description="Alternating split orientation and ratio resizing for new i3/sway windows",
    author="pinpox",
    license="ISC",
    packages=find_packages(include=["ratiosplit", "ratiosplit.*"]),
    python_requires=">=3.8",
    install_requires=[
        "PyPubSub>=4.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "ratiosplit=ratiosplit.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: ISC License (ISCL)",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Desktop Environment :: Window Managers",
    ],
)
