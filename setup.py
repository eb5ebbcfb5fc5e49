"""
RelayPI - Self-Tuning PI Controller
Relay feedback auto-tuning with Ziegler-Nichols relay coefficients
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="relaypi",
    version="1.0.0",
    author="RelayPI Contributors",
    description="Self-tuning PI controller using the relay feedback method",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=[
        "loguru>=0.6.0",
        "PyYAML>=5.4",
    ],
    extras_require={
        "test": ["pytest>=6.0", "numpy>=1.20.0"],
        "dev": ["pytest>=6.0", "numpy>=1.20.0", "black", "isort", "flake8"],
    },
)
