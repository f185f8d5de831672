"""
Setup script for h2raw, a non-conformant HTTP/2 client for protocol testing.
"""

from setuptools import setup

setup(
    name="h2raw",
    version="0.1.0",
    description="Deliberately non-conformant HTTP/2 client for protocol testing and security probing",
    packages=["h2raw", "h2raw.cli", "h2raw.clients", "h2raw.utils"],
    install_requires=[
        "click>=8.0.0",
        "rich>=10.0.0",
        "h2>=4.0.0",
        "hpack>=4.0.0",
        "hyperframe>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.24.0",
            "cryptography>=3.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "h2raw=h2raw.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Information Technology",
        "Topic :: Security",
        "Topic :: Internet :: WWW/HTTP",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.11",
)
