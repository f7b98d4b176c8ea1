# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = "content-store"
__summary__ = "A content-addressable storage service."

__version__ = "0.1.0"

__install_requires__ = [
    "fs>=2.4.16",
    # fs declares its namespace through pkg_resources.
    "setuptools<81",
    "fastapi>=0.110",
    "starlette>=0.37",
    "python-multipart>=0.0.13",
    "anyio>=4.0",
    "uvicorn>=0.29",
    "blake3>=0.4",
]
__tests_require__ = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
    "httpx>=0.27",
    "tox",
]

__author__ = "content-store contributors"

__license__ = "MIT License"
