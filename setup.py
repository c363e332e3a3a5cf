"""
PurePy: Recursive Pure Function Builder

Compiles self-referential expression trees into Python callables with:
1. Transparent memoization keyed by function identity and argument
2. Fork-join parallel evaluation of independent recursive calls
3. Member-access purity checking at build time
"""

from setuptools import setup, find_packages

setup(
    name="purepy",
    version="1.0.0",
    description="Recursive pure function builder with memoization and parallel evaluation",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="PurePy Team",
    python_requires=">=3.10",
    packages=find_packages(include=["purepy", "purepy.*"]),
    install_requires=[
        "numpy>=1.24.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "tabulate>=0.9",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Compilers",
        "Topic :: Software Development :: Libraries",
    ],
)
