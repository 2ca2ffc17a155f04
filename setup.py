"""Setup configuration for traitbank-dump package."""

from setuptools import setup, find_packages
from pathlib import Path

# PyPI long description
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="traitbank-dump",
    version="1.0.0",
    description="Resumable, chunked dumps of a trait graph database to a ZIP of CSV tables",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["traitdump", "traitdump.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.24.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "requests-toolbelt>=1.0.0",  # User-Agent string
        "tenacity>=8.0.0",  # Retries for the query endpoint
    ],
    extras_require={
        "s3": [
            "s3fs>=2023.1.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.990",
        ],
    },
    entry_points={
        "console_scripts": [
            "dump-traits=traitdump.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="traits graph-database neo4j cypher bulk-export csv",
)
