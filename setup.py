#!/usr/bin/env python3
"""
Setup script for the MVC Map application
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="mvc-map",
    version="1.0.0",
    author="MVC Map Team",
    description="Interactive map of mapped value cases with marker/heatmap switching and viewport culling",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where=".", include=["mvc_map", "mvc_map.*"]),
    package_dir={"": "."},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0", "shapely>=2.0"],
    },
    include_package_data=True,
    package_data={
        "": ["*.md", "*.txt"],
    },
)
