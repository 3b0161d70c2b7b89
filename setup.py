"""
Setup script for silq.

This script handles the installation of the package.
"""

import sys
from setuptools import setup, find_packages


def get_long_description():
    """Get long description from README."""
    try:
        with open("README.md", "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return "Asynchronous HTTP/1.1 client with mutual TLS and streaming bodies"


def main():
    """Main setup function."""
    # Check Python version
    if sys.version_info < (3, 11):
        raise RuntimeError("Python 3.11 or higher is required")

    setup(
        name="silq",
        version="0.1.0",
        description="Asynchronous HTTP/1.1 client with mutual TLS and streaming bodies",
        long_description=get_long_description(),
        long_description_content_type="text/markdown",
        author="Developer",
        author_email="dev@example.com",
        packages=find_packages(where="src"),
        package_dir={"": "src"},
        python_requires=">=3.11",
        install_requires=[
            "h11>=0.14.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0.0",
                "pytest-asyncio>=0.21.0",
                "cryptography>=41.0.0",
            ],
            "dev": [
                "pytest>=7.0.0",
                "pytest-asyncio>=0.21.0",
                "cryptography>=41.0.0",
                "black>=22.0.0",
                "mypy>=1.0.0",
                "pre-commit>=2.20.0",
                "pytest-cov>=4.0.0",
            ],
        },
        classifiers=[
            "Development Status :: 3 - Alpha",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: MIT License",
            "Operating System :: OS Independent",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.12",
            "Topic :: Internet :: WWW/HTTP",
            "Topic :: Software Development :: Libraries :: Python Modules",
        ],
        keywords=["http", "async", "client", "tls", "mtls", "streaming"],
        zip_safe=False,
        include_package_data=True,
    )


if __name__ == "__main__":
    main()
