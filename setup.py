#!/usr/bin/env python3
"""
Setup configuration for Snapback package.

This makes the common modules importable across the pipeline and provides
a command-line entry point for the snapback script.

Install in development mode: pip install -e .
"""

from pathlib import Path
from setuptools import setup, find_packages

# Read the README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements from requirements.txt
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    with open(requirements_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and not line.startswith("-"):
                requirements.append(line)

setup(
    name="snapback",
    version="0.1.0",
    description="Restore capture dates, locations and overlays to Snapchat Memories exports",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["common", "common.*", "processors", "processors.*"]),
    py_modules=["snapback"],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "snapback=snapback:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Multimedia :: Video",
        "Topic :: System :: Archiving",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
    keywords="snapchat memories metadata exif photos videos overlays archiving",
)
