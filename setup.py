"""
Setup script for async_fetch.
"""

import sys
from setuptools import setup, find_packages


def get_long_description():
    """Get long description from README."""
    try:
        with open("README.md", "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return "asyncio HTTP/1.x client engine with streaming request and response bodies"


def main():
    """Main setup function."""
    if sys.version_info < (3, 11):
        raise RuntimeError("Python 3.11 or higher is required")

    setup(
        name="async_fetch",
        version="0.1.0",
        description="asyncio HTTP/1.x client engine with streaming request and response bodies",
        long_description=get_long_description(),
        long_description_content_type="text/markdown",
        author="Developer",
        author_email="dev@example.com",
        packages=find_packages(where="src"),
        package_dir={"": "src"},
        python_requires=">=3.11",
        install_requires=[
            "h11>=0.14.0",
            "typing-extensions>=4.0.0",
        ],
        extras_require={
            "dev": [
                "pytest>=7.0.0",
                "pytest-asyncio>=0.21.0",
                "black>=22.0.0",
                "mypy>=1.0.0",
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
        keywords=["http", "async", "client", "http1.1", "chunked"],
        zip_safe=False,
        include_package_data=True,
    )


if __name__ == "__main__":
    main()
