#!/usr/bin/env python3
"""
Setup configuration for the Alphabet Codec Pipeline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

# Read requirements from requirements.txt
requirements = []
if (this_directory / "requirements.txt").exists():
    requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="alphabet-codec-pipeline",
    version="1.0.0",
    author="Project Think",
    author_email="",
    description="Configurable-alphabet binary-to-text codec with worker offload and batch queue",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['codec_pipeline*']),
    py_modules=[
        'base_classes',
        'encode',
        'pipeline_configs',
        'pipeline_monitoring',
        'resilience_patterns',
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Communications",
        "Topic :: Text Processing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "alphabet-encode=encode:main",
        ],
    },
    keywords=[
        "base64",
        "encoding",
        "custom-alphabet",
        "data-uri",
        "mime-detection",
        "batch-processing",
    ],
)
